from .auth import (
    create_access_token,
    decode_user_id,
    get_request_token,
    get_current_user_id,
    get_optional_user_id,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    SECRET_KEY,
    ALGORITHM,
)

__all__ = [
    "create_access_token",
    "decode_user_id",
    "get_request_token",
    "get_current_user_id",
    "get_optional_user_id",
    "ACCESS_TOKEN_EXPIRE_MINUTES",
    "SECRET_KEY",
    "ALGORITHM",
]
