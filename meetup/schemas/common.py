from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel

from meetup.utils.datetimes import ensure_utc

# Every datetime crossing the API is normalised to aware UTC; naive input is read as UTC.
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


def strip_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class UserSummary(BaseModel):
    user_id: str
    nickname: str
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    message: str
