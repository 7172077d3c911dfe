"""bcrypt hashing for codes at rest.

bcrypt is deliberately slow, so both hashing and checking are pushed to
the default thread pool to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import secrets
from functools import lru_cache

import bcrypt

DEFAULT_COST = 10


def hash_code(code: str, cost: int = DEFAULT_COST) -> str:
    """Return a salted bcrypt hash of *code*."""
    return bcrypt.hashpw(code.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("ascii")


def check_code(code: str, code_hash: str) -> bool:
    """Constant-time check of *code* against a bcrypt *code_hash*."""
    return bcrypt.checkpw(code.encode("utf-8"), code_hash.encode("ascii"))


@lru_cache(maxsize=None)
def dummy_hash(cost: int = DEFAULT_COST) -> str:
    """A real hash of a random secret, used to burn the same CPU as a real check.

    It must be a well-formed bcrypt hash at the same cost as stored codes,
    otherwise ``checkpw`` would return early and the branch would be faster.
    """
    return hash_code(secrets.token_hex(16), cost)


async def hash_code_async(code: str, cost: int = DEFAULT_COST) -> str:
    return await asyncio.to_thread(hash_code, code, cost)


async def check_code_async(code: str, code_hash: str) -> bool:
    return await asyncio.to_thread(check_code, code, code_hash)


async def dummy_hash_async(cost: int = DEFAULT_COST) -> str:
    # The first call per cost runs a full bcrypt hash
    return await asyncio.to_thread(dummy_hash, cost)
