from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel


class FilterModel(BaseModel):
    item_type: str = "ALL"
    year: Union[int, str] = "ALL"


class CredentialsRequest(BaseModel):
    email: str = ""
    password: str = ""


class UserModel(BaseModel):
    uid: str
    email: Optional[str] = None


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserModel


class VoteRequest(BaseModel):
    vote: str


class VoteModel(BaseModel):
    user_id: str
    vote: str
    created_at: datetime
    email: Optional[str] = None


class VoteResponse(BaseModel):
    vote: Optional[VoteModel] = None
    created: bool = False
