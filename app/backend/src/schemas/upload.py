"""Upload schemas."""

from pydantic import BaseModel


class ActionResult(BaseModel):
    ok: bool
    error: str | None = None
    key: str | None = None


class ObjectURLRead(BaseModel):
    url: str
    public: bool
    expires: int | None = None
