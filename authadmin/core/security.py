import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jws
from jose.exceptions import JWSError
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SIGNING_ALGORITHM = "HS256"


def utcnow() -> datetime:
    """Naive UTC timestamp, the form the store persists."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def expires_in(seconds: int, now: Optional[datetime] = None) -> datetime:
    """Timestamp ``seconds`` after ``now``."""
    return (now or utcnow()) + timedelta(seconds=seconds)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)


def generate_session_token() -> str:
    """Opaque session token. URL-safe, never contains ':'."""
    return secrets.token_urlsafe(32)


def sign_value(value: str, secret_key: str) -> str:
    """Sign a cookie value as a compact JWS."""
    return jws.sign(value.encode("utf-8"), secret_key, algorithm=SIGNING_ALGORITHM)


def unsign_value(signed: str, secret_key: str) -> Optional[str]:
    """Verify a signed cookie value. Returns None if the signature is invalid."""
    try:
        payload = jws.verify(signed, secret_key, algorithms=[SIGNING_ALGORITHM])
    except JWSError:
        return None
    return payload.decode("utf-8")
