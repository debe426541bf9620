"""RabbitMQ publishing for the webhook relay."""

from .rabbitmq import BrokerConnector, ExchangeHandle
from .publisher import RelayPublisher

__all__ = ["BrokerConnector", "ExchangeHandle", "RelayPublisher"]
