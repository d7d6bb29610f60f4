import uuid

from pydantic import BaseModel, Field
from omo.message import Message


class Session(BaseModel):
    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    transcript: list[Message] = Field(default_factory=list)
