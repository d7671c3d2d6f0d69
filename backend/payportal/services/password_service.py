import bcrypt
from starlette.concurrency import run_in_threadpool

BCRYPT_ROUNDS = 12


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Compare a presented password with a stored bcrypt hash. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


# bcrypt is CPU bound; request handlers use these so the event loop keeps serving
async def hash_password_in_thread(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return await run_in_threadpool(hash_password, password, rounds)


async def verify_password_in_thread(password: str, password_hash: str) -> bool:
    return await run_in_threadpool(verify_password, password, password_hash)
