"""Relay GitHub push webhooks to a RabbitMQ direct exchange."""

__version__ = "0.1.0"
