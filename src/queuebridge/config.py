"""
Configuration for queuebridge services.

Transport connection settings and topic/queue settings are plain frozen
dataclasses handed to constructors explicitly. Nothing here is global state.
"""

from dataclasses import dataclass
from typing import Optional

# Global service name for logging/observability systems
SERVICE_NAME = "queuebridge"

# SQS caps a single receive at 10 messages, the bridge applies the same bound everywhere
MAX_MESSAGES_PER_RECEIVE = 10


@dataclass(frozen=True)
class AwsTransportConfig:
    """Connection settings for the SNS/SQS binding."""

    region: str
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    connect_timeout: int = 10
    read_timeout: int = 30


@dataclass(frozen=True)
class RabbitTransportConfig:
    """Connection settings for the RabbitMQ binding."""

    host: str
    port: int = 5672
    username: str = "guest"
    password: str = "guest"
    virtual_host: str = "/"
    heartbeat: int = 30
    timeout: int = 10
    ssl_enabled: bool = False
    ssl_hostname: Optional[str] = None
    max_reconnect_attempts: int = 5
    reconnect_delay: float = 1.0

    def connection_params(self) -> dict:
        return {
            "hostname": self.host,
            "port": self.port,
            "username": self.username,
            "password": self.password,
            "virtual_host": self.virtual_host,
            "heartbeat": self.heartbeat,
            "timeout": self.timeout,
            "ssl": self.ssl_enabled,
        }


@dataclass(frozen=True)
class TopicConfig:
    """Topic name plus the two subscriptions created alongside it."""

    topic_name: str
    queue_protocol: str
    subscriber_endpoint: Optional[str] = None
    subscriber_protocol: Optional[str] = None
    # deliver the published body to the queue without the broker's envelope
    raw_message_delivery: bool = False


@dataclass(frozen=True)
class QueueConfig:
    """Queue name and receive settings."""

    queue_name: str
    max_messages: int = MAX_MESSAGES_PER_RECEIVE
    wait_time_seconds: Optional[int] = None
    visibility_timeout: Optional[int] = None
    cache_address: bool = False

    def __post_init__(self):
        validate_max_messages(self.max_messages)


def validate_max_messages(max_messages: int) -> int:
    """Validate and return a per-receive message count."""
    if not 1 <= max_messages <= MAX_MESSAGES_PER_RECEIVE:
        raise ValueError(
            f"max_messages must be between 1 and {MAX_MESSAGES_PER_RECEIVE}, got {max_messages}"
        )
    return max_messages
