"""
Broker-facing layer of the bridge.

``repository.message`` holds the broker-agnostic services and the transport
interfaces they consume; ``repository.aws`` and ``repository.rabbitmq`` bind
those interfaces to a concrete broker.
"""

from .message.queue import QueueService
from .message.topic import TopicService

__all__ = [
    "QueueService",
    "TopicService",
]
