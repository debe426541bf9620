"""CLI and process supervisor for the GitHub webhook relay."""

import json
import logging
import signal
import sys
import threading
from typing import Optional

import click
import httpx
import uvicorn
from fastapi import FastAPI

from webhook_relay import __version__
from webhook_relay.app import PUSH_ROUTE, create_app
from webhook_relay.config import Settings, create_settings
from webhook_relay.errors import BrokerError
from webhook_relay.logging import configure_logging
from webhook_relay.queue import BrokerConnector, RelayPublisher
from webhook_relay.security import (
    HEADER_DELIVERY,
    HEADER_EVENT,
    HEADER_SIGNATURE_256,
    compute_signature,
)
from webhook_relay.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.5


def install_signal_handlers(coordinator: ShutdownCoordinator) -> None:
    """Route SIGINT and SIGTERM into the shutdown coordinator."""

    def handle_signal(signum, frame):
        coordinator.trigger(f"received {signal.Signals(signum).name}")

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


def run_server(
    app: FastAPI,
    host: str,
    port: int,
    coordinator: ShutdownCoordinator,
) -> str:
    """Serve ``app`` until the coordinator is triggered, then drain.

    uvicorn runs in a worker thread; the calling thread does nothing but wait
    for the shutdown reason. On shutdown the listener stops accepting
    connections and lets in-flight requests finish.

    Returns:
        The shutdown reason.

    Raises:
        SystemExit: If the listener stops on its own, e.g. the port is taken.
    """
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port))
    thread = threading.Thread(target=server.run, name="uvicorn", daemon=True)
    thread.start()

    reason = None
    while reason is None:
        reason = coordinator.wait(timeout=POLL_INTERVAL)
        if reason is None and not thread.is_alive():
            logger.error(f"HTTP listener on {host}:{port} stopped unexpectedly")
            raise SystemExit(1)

    logger.info(f"Shutdown message: {reason}")
    server.should_exit = True
    thread.join()
    coordinator.mark_stopped()
    return reason


def build_publisher(settings: Settings, coordinator: ShutdownCoordinator) -> RelayPublisher:
    connector = BrokerConnector(settings.rmq_addr, timeout=settings.publish_timeout)
    return RelayPublisher(
        connector,
        settings.rmq_exchange_name,
        retry_delay=settings.publish_retry_delay,
        timeout=settings.publish_timeout,
        cancel_event=coordinator.stop_event,
    )


def load_settings(**overrides) -> Settings:
    settings = create_settings(**{k: v for k, v in overrides.items() if v is not None})
    configure_logging(settings.log_level)
    return settings


@click.group()
@click.version_option(version=__version__, prog_name="webhook-relay")
def cli():
    """Relay GitHub push webhooks to a RabbitMQ direct exchange."""


@cli.command()
@click.option("--host", type=str, default=None, help="Interface to bind (default: HTTP_SERVICE_HOST)")
@click.option("--port", type=int, default=None, help="Port to listen on (default: HTTP_SERVICE_PORT)")
def serve(host: Optional[str], port: Optional[int]):
    """Run the webhook relay until a shutdown is triggered."""
    settings = load_settings(http_service_host=host, http_service_port=port)

    logger.info("🚀 github-webhook-relay started")
    coordinator = ShutdownCoordinator()
    publisher = build_publisher(settings, coordinator)

    # Create the exchange up front so consumers can bind before the first push
    try:
        publisher.connector.declare_exchange(settings.rmq_exchange_name)
    except BrokerError as e:
        logger.error(f"❌ Failed to declare exchange at startup: {e}")
        sys.exit(1)

    app = create_app(settings, publisher, coordinator)
    install_signal_handlers(coordinator)
    run_server(app, settings.http_service_host, settings.http_service_port, coordinator)

    logger.info("github-webhook-relay shutdown gracefully")


@cli.command("declare-exchange")
def declare_exchange():
    """Declare the configured exchange and exit."""
    settings = load_settings()
    connector = BrokerConnector(settings.rmq_addr, timeout=settings.publish_timeout)

    try:
        connector.declare_exchange(settings.rmq_exchange_name)
    except BrokerError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)

    click.echo(f"Exchange '{settings.rmq_exchange_name}' declared")


def create_example_payload(repository: str) -> dict:
    """Create a minimal push payload for testing."""
    owner = repository.split("/", 1)[0]
    return {
        "ref": "refs/heads/main",
        "before": "0" * 40,
        "after": "1" * 40,
        "pusher": {"name": owner, "email": f"{owner}@example.com"},
        "repository": {"name": repository.rsplit("/", 1)[-1], "full_name": repository},
        "sender": {"login": owner},
    }


@cli.command("send-example")
@click.option("--url", default=None, help="Relay base URL (default: http://localhost:HTTP_SERVICE_PORT)")
@click.option("--repo", default="example/repo", show_default=True, help="Repository full name")
def send_example(url: Optional[str], repo: str):
    """Post a signed example push to a running relay."""
    settings = load_settings()
    base_url = url or f"http://localhost:{settings.http_service_port}"

    body = json.dumps(create_example_payload(repo)).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        HEADER_EVENT: "push",
        HEADER_DELIVERY: "example",
        HEADER_SIGNATURE_256: compute_signature(body, settings.github_secret_token),
    }

    try:
        resp = httpx.post(f"{base_url.rstrip('/')}{PUSH_ROUTE}", content=body, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"❌ Failed to send example push: {e}")
        sys.exit(1)

    click.echo(f"{resp.status_code} {resp.text!r}")
    if resp.text != "ok":
        sys.exit(1)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
