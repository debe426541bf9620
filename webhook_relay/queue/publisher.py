"""Relay publisher: delivers one marker message per push with retries."""

import logging
import threading
import time
from typing import Optional

from webhook_relay.errors import BrokerError, PublishTimeout, RelayCancelled
from webhook_relay.events import PushEvent
from webhook_relay.queue.rabbitmq import BrokerConnector

logger = logging.getLogger(__name__)

MESSAGE_BODY = b"push"
CONTENT_TYPE = "text/plain"
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_TIMEOUT = 5.0


class RelayPublisher:
    """Publishes push events to the relay exchange.

    The message body is a fixed marker, not the webhook document; consumers
    learn which repository changed from the routing key.
    """

    def __init__(
        self,
        connector: BrokerConnector,
        exchange_name: str,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.connector = connector
        self.exchange_name = exchange_name
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.cancel_event = cancel_event

    def _publish_once(self, event: PushEvent) -> None:
        with self.connector.open_exchange(self.exchange_name) as exchange:
            exchange.publish(event.routing_key, MESSAGE_BODY, content_type=CONTENT_TYPE)

    def publish(self, event: PushEvent) -> None:
        """Make a single, time-bounded publish attempt on a fresh connection.

        Raises:
            BrokerError: On any transient broker failure.
            PublishTimeout: If the attempt does not finish within ``timeout``.
        """
        errors = []

        def attempt():
            try:
                self._publish_once(event)
            except Exception as e:
                errors.append(e)

        # Daemon: an abandoned attempt must not hold up interpreter exit
        worker = threading.Thread(target=attempt, name="relay-publish", daemon=True)
        worker.start()
        worker.join(self.timeout)

        if worker.is_alive():
            raise PublishTimeout(
                f"publish to '{self.exchange_name}' timed out after {self.timeout:g}s"
            )
        if errors:
            raise errors[0]

        logger.info(
            f"Published push for {event.repository_full_name} "
            f"to exchange '{self.exchange_name}'"
        )

    def _wait_before_retry(self) -> bool:
        """Sleep for the backoff delay; return True if shutdown interrupted it."""
        if self.cancel_event is None:
            time.sleep(self.retry_delay)
            return False
        return self.cancel_event.wait(self.retry_delay)

    def publish_with_retry(self, event: PushEvent) -> int:
        """Publish ``event``, retrying transient failures until it is accepted.

        There is no attempt limit. Each retry reconnects from scratch after a
        fixed ``retry_delay`` backoff. The loop only stops early when the
        cancel event is set.

        Returns:
            Number of attempts used.

        Raises:
            RelayCancelled: If shutdown began while waiting to retry.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                self.publish(event)
                return attempt
            except BrokerError as e:
                logger.warning(f"Publish attempt {attempt} failed: {e}")
                logger.info(f"Retry publish in {self.retry_delay:g} seconds...")

            if self._wait_before_retry():
                logger.error(
                    f"Shutdown interrupted relay of push to {event.repository_full_name} "
                    f"by {event.pusher_name} after {attempt} attempts; message not delivered"
                )
                raise RelayCancelled(
                    f"relay of {event.repository_full_name} cancelled by shutdown"
                )
