import logging
import os
import secrets
from datetime import UTC, datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt

from meetup.config.loader import get_access_token_expire_minutes

# Set up a dedicated logger for authentication events
logger = logging.getLogger("meetup.auth")


def generate_dev_key() -> str:
    """Generate a throwaway signing key for development environments ONLY."""
    key = secrets.token_urlsafe(48)
    logger.warning(
        "\n"
        + "*" * 80
        + "\n"
        + "DEVELOPMENT MODE: Using generated secret key.\n"
        + "Tokens will not survive a restart.\n"
        + "Set MEETUP_JWT_SECRET_KEY in your environment variables for production.\n"
        + "*" * 80
    )
    return key


def validate_secret_key(key: str) -> bool:
    """Validate that a JWT secret key meets minimum security requirements."""
    if not key:
        return False
    if len(key) < 32:
        logger.error("JWT secret key must be at least 32 characters long for security.")
        return False
    return True


def _is_production_mode() -> bool:
    env = os.getenv("MEETUP_ENV", "development").strip().lower()
    return env in {"production", "prod"}


SECRET_KEY = os.getenv("MEETUP_JWT_SECRET_KEY")
ALGORITHM = "HS256"
JWT_ISSUER = os.getenv("MEETUP_JWT_ISSUER", "meetup")
ACCESS_TOKEN_EXPIRE_MINUTES = get_access_token_expire_minutes()

if not SECRET_KEY:
    if _is_production_mode():
        raise RuntimeError(
            "Missing MEETUP_JWT_SECRET_KEY while MEETUP_ENV is set to production. "
            + "Configure a strong static secret before startup."
        )
    SECRET_KEY = generate_dev_key()
elif not validate_secret_key(SECRET_KEY):
    raise RuntimeError(
        "Invalid JWT secret key configuration. "
        + "The key must be at least 32 characters long. "
        + "Update MEETUP_JWT_SECRET_KEY in your environment variables."
    )
else:
    logger.info("JWT secret key validated and loaded from environment.")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a new JWT access token.
    The 'sub' (subject) claim must carry the user id.
    """
    to_encode = data.copy()
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": now, "iss": JWT_ISSUER})

    try:
        encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
        logger.debug("Created access token for subject: %s", data.get("sub"))
        return encoded_jwt
    except JWTError as exc:
        logger.error(
            "Error creating access token for subject %s: %s",
            data.get("sub"),
            exc,
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create access token due to an internal error.",
        )


async def get_request_token(request: Request) -> Optional[str]:
    """
    Extracts the JWT from the 'access_token' cookie, falling back to an
    ``Authorization: Bearer`` header. A 'Bearer ' prefix is stripped either way.
    """
    raw = request.cookies.get("access_token")
    if not raw:
        raw = request.headers.get("Authorization")
    if not raw:
        logger.debug("No access token found in cookie or Authorization header.")
        return None
    if raw.startswith("Bearer "):
        return raw.split(" ", 1)[1].strip() or None
    return raw


def decode_user_id(token: str) -> Optional[str]:
    """Return the ``sub`` claim of a valid token, or None when it is absent."""
    payload = jwt.decode(
        token,
        SECRET_KEY,
        algorithms=[ALGORITHM],
        issuer=JWT_ISSUER,
        options={"verify_aud": False},
    )
    subject = payload.get("sub")
    return str(subject) if subject else None


async def get_current_user_id(
    token: Optional[str] = Depends(get_request_token),
) -> str:
    """
    FastAPI dependency returning the caller's user id from the JWT.
    Raises 401 when the token is missing, expired or malformed.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials. Invalid or expired token.",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token is None:
        logger.info("Authentication required: no token on request.")
        raise credentials_exception

    try:
        user_id = decode_user_id(token)
    except JWTError as exc:
        logger.warning("JWTError during token decoding: %s", exc)
        raise credentials_exception

    if user_id is None:
        logger.error("Token decoding error: 'sub' claim missing in token payload.")
        raise credentials_exception
    return user_id


async def get_optional_user_id(
    token: Optional[str] = Depends(get_request_token),
) -> Optional[str]:
    """Like ``get_current_user_id`` but anonymous callers resolve to None."""
    if not token:
        return None
    try:
        return decode_user_id(token)
    except JWTError:
        logger.debug("Ignoring invalid token on an optional-identity route.")
        return None
