from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI, Request, Response

from .config import Settings
from .handler import ProxyHandler, ProxyResponse, health_response
from .logs import configure_logging

log = structlog.get_logger()

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
HEALTH_METHODS = ["GET", "HEAD", "OPTIONS"]
NETLIFY_PREFIX = "/.netlify/functions"


def _to_response(res: ProxyResponse) -> Response:
    return Response(content=res.body, status_code=res.status, headers=res.headers)


def create_app(settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    settings = settings or Settings()
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.upstream_timeout)
    handler = ProxyHandler(settings, client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(
            "service_starting",
            provider=settings.upstream_provider,
            proxy_path=settings.proxy_path,
            env=settings.context,
            version=settings.app_version,
            api_key_set=bool(settings.nano_api_key),
        )
        yield
        if owns_client:
            await client.aclose()
        log.info("service_stopped")

    app = FastAPI(title="nano-remove", version=settings.app_version, lifespan=lifespan)
    app.state.settings = settings
    app.state.handler = handler

    async def proxy(request: Request):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        res = await handler.handle(request.method, await request.body(), request_id=request_id)
        return _to_response(res)

    async def health():
        """Readiness probe."""
        return _to_response(health_response(settings))

    for path in {settings.proxy_path, f"{NETLIFY_PREFIX}/nano-remove"}:
        app.add_api_route(path, proxy, methods=PROXY_METHODS, include_in_schema=path == settings.proxy_path)
    app.add_api_route("/health", health, methods=HEALTH_METHODS)
    app.add_api_route(f"{NETLIFY_PREFIX}/health", health, methods=HEALTH_METHODS, include_in_schema=False)

    return app


def run() -> None:
    import uvicorn

    settings = Settings()
    configure_logging(settings.log_level, settings.log_format)
    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
