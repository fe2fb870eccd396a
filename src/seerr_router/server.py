from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .router import WebhookRouter

LOGGER = logging.getLogger(__name__)

_STATUS_CODES = {"invalid": 400, "error": 502}


def create_app(router: WebhookRouter) -> FastAPI:
    """Build the webhook receiver around an already configured router."""
    app = FastAPI(
        title="seerr-router",
        description="Routes Overseerr request webhooks to Radarr/Sonarr instances",
        version="0.1.0",
    )
    app.state.router = router

    @app.post("/webhook")
    async def receive_webhook(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except ValueError:
            LOGGER.warning("Webhook body is not valid JSON")
            return JSONResponse(
                status_code=400,
                content={"status": "invalid", "message": "Body is not valid JSON"},
            )

        result = await run_in_threadpool(router.handle, payload)
        return JSONResponse(status_code=_STATUS_CODES.get(result.status, 200), content=result.as_dict())

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        config = router.config
        return {
            "status": "healthy",
            "filters": len(config.filters),
            "instances": sorted(config.instances),
            "dry_run": config.settings.dry_run,
        }

    return app
