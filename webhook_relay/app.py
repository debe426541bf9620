"""FastAPI endpoint relaying GitHub push webhooks to RabbitMQ."""

import logging
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Header, Request, Response
from fastapi.responses import PlainTextResponse

from webhook_relay.config import Settings
from webhook_relay.errors import PayloadError, RelayCancelled, SignatureError
from webhook_relay.events import extract_push_event
from webhook_relay.queue import RelayPublisher
from webhook_relay.security import validate_payload
from webhook_relay.shutdown import ShutdownCoordinator, ShutdownState

logger = logging.getLogger(__name__)

PUSH_ROUTE = "/onGitHubPush"


def relay_push(
    payload: bytes,
    publisher: RelayPublisher,
    coordinator: ShutdownCoordinator,
    shutdown_on_push: bool,
    event_name: Optional[str] = None,
    delivery: Optional[str] = None,
) -> bool:
    """Extract, publish and evaluate the shutdown trigger for one delivery.

    Runs after the webhook has been acknowledged, so nothing here affects the
    HTTP response.

    Returns:
        True if a push event was relayed.
    """
    logger.info(f"Payload {len(payload)} bytes received from GitHub (delivery {delivery})")

    try:
        event = extract_push_event(payload)
    except PayloadError as e:
        logger.error(f"Discarding authenticated delivery {delivery}: {e}")
        return False

    if event is None:
        logger.info(f"Not a push event (X-GitHub-Event: {event_name}); ignored")
        return False

    logger.info(
        f"Pushed on repository {event.repository_full_name} by {event.pusher_name} "
        f"({event.ref} -> {event.after[:7]})"
    )

    try:
        attempts = publisher.publish_with_retry(event)
    except RelayCancelled:
        return False

    if attempts > 1:
        logger.info(f"Push for {event.repository_full_name} relayed after {attempts} attempts")

    if not shutdown_on_push:
        logger.debug("Push relayed, but SHUTDOWN_ON_GITHUB_PUSH is disabled. No shutdown.")
        return True

    logger.info("Shutdown by GitHub push.")
    coordinator.trigger(
        f"GitHub push to {event.repository_full_name} by {event.pusher_name}"
    )
    return True


def create_app(
    settings: Settings,
    publisher: RelayPublisher,
    coordinator: ShutdownCoordinator,
) -> FastAPI:
    """Build the relay application.

    Args:
        settings: Validated settings.
        publisher: Publisher used by the relay task.
        coordinator: Shutdown coordinator owned by the process supervisor.

    Returns:
        The FastAPI application.
    """
    app = FastAPI(title="github-webhook-relay")
    app.state.settings = settings
    app.state.publisher = publisher
    app.state.coordinator = coordinator

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        state = coordinator.state
        return {
            "status": "healthy" if state is ShutdownState.RUNNING else state.value,
            "exchange": settings.rmq_exchange_name,
            "shutdown_on_github_push": settings.shutdown_on_github_push,
            "state": state.value,
        }

    @app.post(PUSH_ROUTE)
    async def on_github_push(
        request: Request,
        background_tasks: BackgroundTasks,
        content_type: Optional[str] = Header(None),
        x_hub_signature_256: Optional[str] = Header(None),
        x_hub_signature: Optional[str] = Header(None),
        x_github_event: Optional[str] = Header(None),
        x_github_delivery: Optional[str] = Header(None),
    ):
        """Acknowledge an authenticated push and relay it in the background."""
        body = await request.body()

        try:
            payload = validate_payload(
                body,
                content_type,
                x_hub_signature_256,
                x_hub_signature,
                settings.github_secret_token,
            )
        except SignatureError as e:
            logger.warning(f"Webhook validation failed: {e}")
            return Response()

        background_tasks.add_task(
            relay_push,
            payload,
            publisher,
            coordinator,
            settings.shutdown_on_github_push,
            x_github_event,
            x_github_delivery,
        )
        return PlainTextResponse("ok")

    return app
