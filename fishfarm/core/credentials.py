import secrets
from typing import Tuple

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

DEFAULT_CODE_LENGTH = 4


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> Tuple[str, str]:
    """
    Issue a one-time numeric authorization code.

    Returns (plain_code, code_hash). Every digit comes from ``secrets`` so the
    code space is uniform (0000-9999 for the default length). Only the salted
    bcrypt hash is meant to be stored; the plain code is handed to the notifier
    once.
    """
    if length < 1:
        raise ValueError("code length must be positive")
    plain = "".join(str(secrets.randbelow(10)) for _ in range(length))
    return plain, pwd_context.hash(plain)


def check_code(plain_code: str, code_hash: str) -> bool:
    """Constant-time check of a submitted code against the stored hash."""
    if not plain_code or not code_hash:
        return False
    return pwd_context.verify(plain_code.strip(), code_hash)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    return pwd_context.verify(password, password_hash)
