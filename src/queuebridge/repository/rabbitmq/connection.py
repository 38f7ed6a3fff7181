"""
RabbitMQ connection wrapper with reconnect-on-demand.

Bridge calls are short blocking calls made from a polling loop, so instead of
a background reconnect thread the connection is checked and re-established,
with bounded attempts and backoff, whenever a transport asks for it.
"""

import logging
import ssl
import threading
import time
from typing import Optional

from amqpstorm import AMQPConnectionError, Connection

from queuebridge.config import RabbitTransportConfig

logger = logging.getLogger(__name__)


class RobustConnection:
    def __init__(
        self,
        connection_params: dict,
        max_reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
    ):
        """
        :param connection_params: Keyword arguments for ``amqpstorm.Connection``
        :param max_reconnect_attempts: Maximum number of reconnection attempts per call
        :param reconnect_delay: Initial delay between reconnection attempts in seconds
        :raises AMQPConnectionError: If the initial connection fails
        """
        self._connection_params = connection_params.copy()
        self._max_reconnect_attempts = max_reconnect_attempts
        self._reconnect_delay = reconnect_delay

        self._connection: Optional[Connection] = None
        self._lock = threading.RLock()
        self._is_closed = False

        if not self._connect():
            raise AMQPConnectionError("Failed to establish initial RabbitMQ connection")

    def _connect(self) -> bool:
        try:
            with self._lock:
                logger.info(
                    "Establishing RabbitMQ connection to %s:%s heartbeat=%s SSL=%s",
                    self._connection_params.get("hostname"),
                    self._connection_params.get("port"),
                    self._connection_params.get("heartbeat"),
                    self._connection_params.get("ssl", False),
                )
                self._connection = Connection(**self._attempt_params())

                if self._connection.is_open:
                    logger.info("RabbitMQ connection established successfully")
                    return True
                logger.error("Failed to establish RabbitMQ connection")
                return False

        except Exception as e:
            logger.exception("Error establishing RabbitMQ connection: %s", e)
            self._connection = None
            return False

    def _attempt_params(self) -> dict:
        connection_params = self._connection_params.copy()
        ssl_options = connection_params.get("ssl_options")
        if (
            connection_params.get("ssl")
            and isinstance(ssl_options, dict)
            and "context" in ssl_options
        ):
            # every attempt gets its own SSL context, a reused one fails with "bad record mac"
            connection_params["ssl_options"] = get_rabbitmq_ssl_options(
                ssl_options.get("server_hostname")
            )
            logger.debug("Created fresh SSL context for connection attempt")
        return connection_params

    def _is_healthy(self) -> bool:
        if self._connection is None or not self._connection.is_open:
            return False
        try:
            self._connection.check_for_errors()
        except AMQPConnectionError:
            logger.warning("Connection health check failed")
            return False
        return True

    def get_connection(self) -> Connection:
        """
        Get the current connection, reconnecting first if it is unhealthy.

        :raises AMQPConnectionError: If the connection is closed or cannot be restored
        """
        with self._lock:
            if self._is_closed:
                raise AMQPConnectionError("Connection has been closed")
            if self._is_healthy():
                return self._connection

            logger.warning("Connection is not available, attempting to reconnect")
            current_delay = self._reconnect_delay
            for attempt in range(1, self._max_reconnect_attempts + 1):
                logger.info(
                    "Reconnection attempt %d/%d", attempt, self._max_reconnect_attempts
                )
                if self._connect():
                    logger.info("Reconnection successful after %d attempts", attempt)
                    return self._connection
                if attempt < self._max_reconnect_attempts:
                    time.sleep(current_delay)
                    current_delay = min(current_delay * 1.5, 30.0)

        raise AMQPConnectionError(
            f"Failed to reconnect after {self._max_reconnect_attempts} attempts"
        )

    def is_connected(self) -> bool:
        with self._lock:
            return self._is_healthy()

    def close(self):
        """Close the connection. Further ``get_connection`` calls fail."""
        logger.info("Closing robust connection")
        with self._lock:
            self._is_closed = True
            if self._connection and self._connection.is_open:
                try:
                    self._connection.close()
                except Exception as e:
                    logger.exception("Error closing connection: %s", e)
            self._connection = None
        logger.info("Robust connection closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def get_rabbitmq_ssl_options(hostname: Optional[str]) -> dict:
    """Create TLS 1.2+ SSL options with hostname verification."""
    if not hostname:
        raise ValueError(
            "SSL is enabled but no hostname provided. "
            "Please set QUEUEBRIDGE_RABBITMQ_SSL_HOSTNAME"
        )

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.load_default_certs(purpose=ssl.Purpose.SERVER_AUTH)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED

    return {
        "context": context,
        "server_hostname": hostname,
    }


def build_rabbitmq_connection(config: RabbitTransportConfig) -> RobustConnection:
    connection_params = config.connection_params()
    if config.ssl_enabled:
        connection_params["ssl_options"] = get_rabbitmq_ssl_options(config.ssl_hostname)

    return RobustConnection(
        connection_params=connection_params,
        max_reconnect_attempts=config.max_reconnect_attempts,
        reconnect_delay=config.reconnect_delay,
    )
