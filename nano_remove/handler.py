"""Image-proxy handler.

Framework independent: ``ProxyHandler.handle`` takes an HTTP method and a raw
body and always returns exactly one ``ProxyResponse``. The FastAPI app in
``main.py`` only adapts that to a ``fastapi.Response``.
"""
from __future__ import annotations

import json
import time
import uuid
from typing import Any, Dict, Optional, Union

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from .config import Settings
from .errors import BadInput, MethodNotAllowed, ProxyError, UpstreamError
from .schemas import ClassifiedImage, Envelope, ErrorBody, HealthResponse, Meta, RemoveRequest, UpstreamPayload
from .upstream import UpstreamAdapter, make_adapter

log = structlog.get_logger()

DEFAULT_MIME = "image/jpeg"


class ProxyResponse(BaseModel):
    status: int
    headers: Dict[str, str]
    body: str = ""


def classify_image(image: str) -> ClassifiedImage:
    """Sort an ``image`` string into data-URI, remote URL or raw base64."""
    if image.startswith("data:"):
        header, sep, payload = image[5:].partition(",")
        if not sep:
            raise BadInput("Malformed data URI: missing ','")
        mime = header.split(";base64", 1)[0] if ";base64" in header else ""
        return ClassifiedImage(kind="data_uri", mime_type=mime or DEFAULT_MIME, data=payload)
    if image.startswith("http"):
        return ClassifiedImage(kind="url", url=image)
    return ClassifiedImage(kind="base64", data=image)


def _reject_constant(name: str) -> Any:
    # NaN / Infinity / -Infinity are not JSON
    raise ValueError(f"invalid JSON constant {name}")


def parse_request(body: Union[bytes, str, None]) -> RemoveRequest:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(body, parse_constant=_reject_constant) if body else {}
    except ValueError:
        raise BadInput("Request body is not valid JSON")
    if not isinstance(data, dict):
        raise BadInput("Request body must be a JSON object")

    try:
        return RemoveRequest.model_validate(data)
    except ValidationError as exc:
        errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        missing_image = any(e["loc"][:1] == ["image"] for e in errors)
        raise BadInput("Missing image" if missing_image else "Invalid request body", details=errors)


def build_payload(req: RemoveRequest, settings: Settings) -> UpstreamPayload:
    image = classify_image(req.image)
    common = dict(
        prompt=req.instruction or req.prompt or settings.default_prompt,
        strength=req.strength if req.strength is not None else settings.default_strength,
        mime_type=image.mime_type,
    )
    if image.kind == "url":
        return UpstreamPayload(image_url=image.url, **common)
    return UpstreamPayload(image_base64=image.data, **common)


def health_response(settings: Settings, now_ms: Optional[int] = None) -> ProxyResponse:
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    health = HealthResponse(ts=ts, env=settings.context or "prod", version=settings.app_version or "0.1.0")
    return ProxyResponse(
        status=200,
        headers={
            "Content-Type": "application/json",
            "Cache-Control": "no-store",
            "Access-Control-Allow-Origin": "*",
        },
        body=health.model_dump_json(),
    )


class ProxyHandler:
    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        adapter: Optional[UpstreamAdapter] = None,
        logger: Any = None,
    ):
        self.settings = settings
        self.client = client
        self.adapter = adapter or make_adapter(settings)
        self.log = logger or log

    async def handle(
        self,
        method: str,
        body: Union[bytes, str, None] = None,
        request_id: Optional[str] = None,
    ) -> ProxyResponse:
        started = time.perf_counter()
        method = (method or "").upper()
        rlog = self.log.bind(request_id=request_id or uuid.uuid4().hex, method=method)

        if method == "OPTIONS":
            return ProxyResponse(status=204, headers=self.settings.cors_headers())

        rlog.info("request_received", body_bytes=len(body or b""))
        try:
            if method != "POST":
                raise MethodNotAllowed("Method not allowed")
            req = parse_request(body)
            payload = build_payload(req, self.settings)
            self.adapter.check_config()
            result = await self._forward(payload, rlog, image_chars=len(req.image))
        except ProxyError as exc:
            rlog.warning("request_failed", code=exc.code, status=exc.status, err=exc.message)
            return self._error(exc, started)
        except Exception as exc:
            rlog.error("request_failed", code="UNEXPECTED", status=500, err=str(exc), exc_info=True)
            return self._error(ProxyError(str(exc) or type(exc).__name__), started)

        return self._json(200, Envelope(ok=True, result=result, meta=self._meta(started)))

    async def _forward(self, payload: UpstreamPayload, rlog: Any, image_chars: int = 0) -> Dict[str, Any]:
        upstream = self.adapter.build_request(payload)
        rlog.info(
            "upstream_call",
            provider=self.adapter.name,
            url=upstream.url,
            image_source="url" if payload.image_url is not None else "base64",
            image_chars=image_chars,
            strength=payload.strength,
        )

        resp = await self.client.post(
            upstream.url,
            json=upstream.body,
            headers=upstream.headers,
            timeout=self.settings.upstream_timeout,
        )
        text = resp.text
        rlog.info("upstream_result", provider=self.adapter.name, status=resp.status_code, body_bytes=len(resp.content))

        if not resp.is_success:
            raise UpstreamError("Upstream API error", status=resp.status_code, details=text)
        try:
            data = resp.json()
        except ValueError:
            return {"raw": text}
        return self.adapter.extract_result(data)

    def _meta(self, started: float) -> Meta:
        return Meta(took_ms=int(round((time.perf_counter() - started) * 1000)))

    def _error(self, exc: ProxyError, started: float) -> ProxyResponse:
        envelope = Envelope(ok=False, error=ErrorBody(**exc.to_dict()), meta=self._meta(started))
        return self._json(exc.status, envelope)

    def _json(self, status: int, envelope: Envelope) -> ProxyResponse:
        headers = {**self.settings.cors_headers(), "Content-Type": "application/json"}
        return ProxyResponse(status=status, headers=headers, body=envelope.model_dump_json(exclude_none=True))
