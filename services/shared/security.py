"""Password hashing for stored voter and admin secrets."""
from passlib.context import CryptContext
from passlib.exc import PasswordSizeError

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def is_hashed(value: str) -> bool:
    """True when the stored value is a hash this context recognizes."""
    return bool(value) and pwd_context.identify(value) is not None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    # Values the context cannot identify (e.g. legacy verbatim secrets) never match
    if not is_hashed(hashed_password):
        pwd_context.dummy_verify()
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except PasswordSizeError:
        # Oversized secrets are rejected the same way as unknown accounts
        pwd_context.dummy_verify()
        return False


def dummy_verify() -> None:
    """Spend the same time as a real verification for unknown accounts."""
    pwd_context.dummy_verify()
