"""Upstream adapters.

An adapter turns an ``UpstreamPayload`` into one HTTP request and turns a
parsed 2xx JSON body back into a result dict. Sending the request and mapping
transport errors is the handler's job.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple
from urllib.parse import quote

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .config import Settings
from .errors import ConfigError, NoImageReturned
from .schemas import UpstreamPayload


class UpstreamRequest(BaseModel):
    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]


class UpstreamAdapter:
    name = "base"
    requires_key = False

    def __init__(self, settings: Settings):
        self.settings = settings

    def check_config(self) -> None:
        if self.requires_key and not self.settings.nano_api_key:
            raise ConfigError("NANO_API_KEY not set")

    def build_request(self, payload: UpstreamPayload) -> UpstreamRequest:
        raise NotImplementedError

    def extract_result(self, data: Any) -> Dict[str, Any]:
        raise NotImplementedError


# ────────────────────────────────────────────────
#  Google generative-language API
# ────────────────────────────────────────────────
class _InlineData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    mime_type: Optional[str] = Field(None, validation_alias=AliasChoices("mime_type", "mimeType"))
    data: Optional[str] = None


class _Part(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: Any = None
    inline_data: Optional[_InlineData] = Field(
        None, validation_alias=AliasChoices("inline_data", "inlineData")
    )


def _first_candidate_parts(data: Any) -> Tuple[List[Any], Optional[str]]:
    """Raw ``candidates[0].content.parts`` list and the candidate's finish reason."""
    candidates = data.get("candidates") if isinstance(data, dict) else None
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return [], None
    first = candidates[0]
    reason = first.get("finishReason", first.get("finish_reason"))
    content = first.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    return (parts if isinstance(parts, list) else []), (reason if isinstance(reason, str) else None)


def iter_parts(raw_parts: Iterable[Any]) -> Iterator[_Part]:
    """Validate parts one at a time, skipping any that don't fit the part shape."""
    for raw in raw_parts:
        try:
            yield _Part.model_validate(raw)
        except ValidationError:
            continue


def first_inline_image(parts: Iterable[_Part]) -> Optional[_InlineData]:
    """Return the first part carrying non-empty inline image data, or None.

    Produces at most one match; the first matching part wins and the scan is
    not resumed afterwards.
    """
    return next((p.inline_data for p in parts if p.inline_data and p.inline_data.data), None)


class GeminiAdapter(UpstreamAdapter):
    name = "gemini"
    requires_key = True

    def build_request(self, payload: UpstreamPayload) -> UpstreamRequest:
        base = self.settings.upstream_url.rstrip("/")
        model = quote(self.settings.nano_model, safe="")
        if payload.image_url is not None:
            image_part = {"file_data": {"mime_type": payload.mime_type, "file_uri": payload.image_url}}
        else:
            image_part = {"inline_data": {"mime_type": payload.mime_type, "data": payload.image_base64}}
        return UpstreamRequest(
            url=f"{base}/models/{model}:generateContent",
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self.settings.nano_api_key or "",
            },
            body={"contents": [{"parts": [{"text": payload.prompt}, image_part]}]},
        )

    def extract_result(self, data: Any) -> Dict[str, Any]:
        raw_parts, finish_reason = _first_candidate_parts(data)
        image = first_inline_image(iter_parts(raw_parts))
        if image is None:
            text = " ".join(p.text for p in iter_parts(raw_parts) if isinstance(p.text, str) and p.text)
            raise NoImageReturned(
                "No image returned from Gemini",
                details=text or finish_reason,
            )
        return {"data": image.data, "mime_type": image.mime_type or "image/png"}


# ────────────────────────────────────────────────
#  Generic flat-payload upstream
# ────────────────────────────────────────────────
class GenericAdapter(UpstreamAdapter):
    name = "generic"

    _IMAGE_KEYS: Tuple[str, ...] = ("image_base64", "image", "data")

    def build_request(self, payload: UpstreamPayload) -> UpstreamRequest:
        headers = {"Content-Type": "application/json"}
        if self.settings.nano_api_key:
            headers["Authorization"] = f"Bearer {self.settings.nano_api_key}"
        return UpstreamRequest(url=self.settings.upstream_url, headers=headers, body=payload.to_body())

    def extract_result(self, data: Any) -> Dict[str, Any]:
        if isinstance(data, dict):
            for key in self._IMAGE_KEYS:
                value = data.get(key)
                if isinstance(value, str) and value:
                    return {"data": value}
            url = data.get("image_url")
            if isinstance(url, str) and url:
                return {"image_url": url}
        raise NoImageReturned("No image returned from upstream")


_ADAPTERS = {
    GeminiAdapter.name: GeminiAdapter,
    GenericAdapter.name: GenericAdapter,
}


def make_adapter(settings: Settings) -> UpstreamAdapter:
    return _ADAPTERS[settings.upstream_provider](settings)
