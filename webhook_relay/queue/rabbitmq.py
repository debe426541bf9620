"""RabbitMQ exchange access for publishing push notifications."""

import logging
from typing import Optional

import pika
import pika.exceptions

from webhook_relay.errors import BrokerError

logger = logging.getLogger(__name__)

EXCHANGE_TYPE = "direct"

# pika raises socket-level errors unwrapped in a few connect paths
TRANSIENT_ERRORS = (pika.exceptions.AMQPError, OSError)


class ExchangeHandle:
    """An open, confirm-mode channel bound to one declared exchange."""

    def __init__(
        self,
        connection: pika.BlockingConnection,
        channel,
        exchange_name: str,
    ):
        self.connection = connection
        self.channel = channel
        self.exchange_name = exchange_name

    def publish(
        self, routing_key: str, body: bytes, content_type: str = "text/plain"
    ) -> None:
        """Publish one message and wait for the broker to confirm it.

        Raises:
            BrokerError: If the broker nacks the message or the channel fails.
        """
        try:
            self.channel.basic_publish(
                exchange=self.exchange_name,
                routing_key=routing_key,
                body=body,
                properties=pika.BasicProperties(content_type=content_type),
                mandatory=False,
            )
        except TRANSIENT_ERRORS as e:
            raise BrokerError(f"publish to '{self.exchange_name}' failed: {e!r}") from e

    def close(self) -> None:
        """Close the underlying connection; errors are logged, not raised."""
        if self.connection is None or self.connection.is_closed:
            return
        try:
            self.connection.close()
        except TRANSIENT_ERRORS as e:
            logger.debug(f"Ignoring error while closing RabbitMQ connection: {e!r}")

    def __enter__(self) -> "ExchangeHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class BrokerConnector:
    """Opens connections to RabbitMQ and declares the relay exchange.

    Every call to :meth:`open_exchange` dials a new connection. Publish volume
    is one message per push, so connections are not pooled; a failed attempt
    never leaves a half-broken connection behind for the next one.
    """

    def __init__(self, url: str, timeout: Optional[float] = None):
        self.url = url
        self.timeout = timeout

    def _connection_parameters(self) -> pika.URLParameters:
        parameters = pika.URLParameters(self.url)
        if self.timeout is not None:
            parameters.socket_timeout = self.timeout
            parameters.stack_timeout = self.timeout
            parameters.blocked_connection_timeout = self.timeout
        return parameters

    def open_exchange(self, name: str) -> ExchangeHandle:
        """Connect, enable publisher confirms and declare ``name``.

        Declaration is idempotent: redeclaring with the same parameters is a
        no-op on the broker, while different parameters make the broker close
        the channel with PRECONDITION_FAILED.

        Args:
            name: Exchange name.

        Returns:
            ExchangeHandle ready for publishing.

        Raises:
            BrokerError: On any connection, channel or declare failure.
        """
        connection = None
        try:
            connection = pika.BlockingConnection(self._connection_parameters())
            channel = connection.channel()
            channel.confirm_delivery()
            channel.exchange_declare(
                exchange=name,
                exchange_type=EXCHANGE_TYPE,
                passive=False,
                durable=False,
                auto_delete=False,
                internal=False,
            )
        except TRANSIENT_ERRORS as e:
            if connection is not None:
                ExchangeHandle(connection, None, name).close()
            raise BrokerError(f"could not open exchange '{name}': {e!r}") from e

        logger.debug(f"Declared {EXCHANGE_TYPE} exchange '{name}'")
        return ExchangeHandle(connection, channel, name)

    def declare_exchange(self, name: str) -> None:
        """Declare ``name`` and close the connection again."""
        with self.open_exchange(name):
            logger.info(f"Exchange '{name}' is declared")
