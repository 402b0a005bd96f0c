"""Request/Response schemas"""
from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RemoveRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    image: str = Field(..., description="data:<mime>;base64,<payload>, raw base64, or an http(s) URL")
    instruction: Optional[str] = Field(None, description="What to remove from the image")
    prompt: Optional[str] = Field(None, description="Alias of instruction, used when instruction is absent")
    strength: Optional[float] = Field(None, allow_inf_nan=False, description="Edit strength forwarded upstream")

    @field_validator("image")
    @classmethod
    def image_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("image must be a non-empty string")
        return v


class ClassifiedImage(BaseModel):
    kind: Literal["data_uri", "url", "base64"]
    mime_type: str = "image/jpeg"
    data: Optional[str] = None
    url: Optional[str] = None


class UpstreamPayload(BaseModel):
    """Flat upstream body. Exactly one of image_base64 / image_url is set."""

    image_base64: Optional[str] = None
    image_url: Optional[str] = None
    prompt: str
    strength: float
    mime_type: str = Field("image/jpeg", exclude=True)

    @model_validator(mode="after")
    def one_image_source(self) -> "UpstreamPayload":
        if (self.image_base64 is None) == (self.image_url is None):
            raise ValueError("exactly one of image_base64 or image_url is required")
        return self

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Meta(BaseModel):
    took_ms: int


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Any = None


class Envelope(BaseModel):
    ok: bool
    result: Optional[Dict[str, Any]] = None
    error: Optional[ErrorBody] = None
    meta: Meta


class HealthResponse(BaseModel):
    ok: bool = True
    ts: int
    env: str
    version: str
