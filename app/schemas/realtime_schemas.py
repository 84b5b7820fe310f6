from pydantic import BaseModel, Field, TypeAdapter
from typing import Annotated, Literal, Union


class AuthFrame(BaseModel):
    type: Literal["auth"]
    user_id: str = Field(..., alias="userId")
    token: str


class PingFrame(BaseModel):
    type: Literal["ping"]


ClientFrame = Annotated[Union[AuthFrame, PingFrame], Field(discriminator="type")]

client_frame_adapter = TypeAdapter(ClientFrame)
