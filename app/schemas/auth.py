from typing import Optional

from pydantic import BaseModel, Field


class LoginPayload(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class SessionOut(BaseModel):
    authenticated: bool
    username: Optional[str] = None
