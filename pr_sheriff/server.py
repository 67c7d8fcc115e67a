"""FastAPI server for PR Sheriff."""

import hashlib
import hmac
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Request, status

from . import __version__
from .jobs import run_blame, run_reminders
from .services import Services

logger = logging.getLogger(__name__)


def verify_webhook_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify a GitHub webhook HMAC-SHA256 signature.

    Without a configured secret no webhook can be verified, so every
    request is rejected.
    """
    if not secret:
        return False

    if not signature or not signature.startswith("sha256="):
        return False

    expected = signature[7:]
    computed = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, expected)


async def process_event_in_background(
    services: Services, event: str, delivery_id: str | None, payload: dict[str, Any]
) -> None:
    """Run event processing detached from the webhook response."""
    try:
        result = await services.events.process(event, delivery_id, payload)
        logger.debug(f"Delivery {delivery_id} processed: {result}")
    except Exception:
        logger.exception(f"Error processing {event} event (delivery {delivery_id})")


def get_services(request: Request) -> Services:
    return request.app.state.services


def create_app(services: Services) -> FastAPI:
    """Create the FastAPI application around already-built services."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services.database is not None:
            await services.database.create_all()
        logger.info("PR Sheriff started")
        yield
        await services.aclose()
        logger.info("PR Sheriff stopped")

    app = FastAPI(
        title="PR Sheriff",
        description="GitHub App that assigns PR reviewers and sends Slack reminders",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, str]:
        """Health check endpoint."""
        database = get_services(request).database
        if database is None:
            db_status = "disabled"
        elif await database.health_check():
            db_status = "connected"
        else:
            db_status = "unavailable"
        return {"status": "healthy", "database": db_status}

    @app.post("/webhook/github")
    async def webhook_handler(
        request: Request,
        background_tasks: BackgroundTasks,
        x_hub_signature_256: str | None = Header(None),
        x_github_event: str | None = Header(None),
        x_github_delivery: str | None = Header(None),
    ) -> dict[str, Any]:
        """Validate a GitHub webhook and process it after responding."""
        services = get_services(request)

        body = await request.body()
        if not verify_webhook_signature(
            body, x_hub_signature_256 or "", services.config.github_webhook_secret
        ):
            logger.warning(f"Invalid webhook signature (delivery {x_github_delivery})")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook signature",
            )

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid JSON payload",
            ) from e

        if not isinstance(payload, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Webhook payload must be a JSON object",
            )

        logger.info(f"Received webhook event: {x_github_event} (delivery {x_github_delivery})")
        background_tasks.add_task(
            process_event_in_background,
            services,
            x_github_event or "",
            x_github_delivery,
            payload,
        )
        return {"status": "accepted"}

    @app.post("/jobs/reminders")
    async def reminders_job(request: Request) -> dict[str, Any]:
        """Run the daily reminders job."""
        result = await run_reminders(get_services(request).job_context())
        return result.to_dict()

    @app.post("/jobs/blame")
    async def blame_job(request: Request) -> dict[str, Any]:
        """Run the stale pull request job."""
        result = await run_blame(get_services(request).job_context())
        return result.to_dict()

    return app
