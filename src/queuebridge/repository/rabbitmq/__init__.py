"""
RabbitMQ bindings of the bridge transports, built on AMQPStorm.

Public API:
    - RobustConnection, build_rabbitmq_connection: Connection handling
    - RabbitTopicTransport: Topics as fanout exchanges
    - RabbitQueueTransport: Queues with basic.get / basic.ack
"""

from .connection import RobustConnection, build_rabbitmq_connection
from .queue import RabbitQueueTransport
from .topic import RabbitTopicTransport

__all__ = [
    "RobustConnection",
    "build_rabbitmq_connection",
    "RabbitQueueTransport",
    "RabbitTopicTransport",
]
