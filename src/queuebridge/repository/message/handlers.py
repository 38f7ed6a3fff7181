import logging
from typing import Callable

from queuebridge.repository.message.abstract_interface import MessageHandlerInterface

logger = logging.getLogger(__name__)


class LoggingMessageHandler(MessageHandlerInterface):
    """Logs every body it is given. Never fails."""

    def __init__(self, log_level: int = logging.INFO) -> None:
        self._log_level = log_level

    def handle(self, body: str) -> None:
        logger.log(self._log_level, "message received: %s", body)


class CallableMessageHandler(MessageHandlerInterface):
    """Adapts a plain ``fn(body)`` to the handler interface."""

    def __init__(self, fn: Callable[[str], None]) -> None:
        if not callable(fn):
            raise TypeError(f"{fn!r} is not callable")
        self._fn = fn

    def handle(self, body: str) -> None:
        self._fn(body)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({getattr(self._fn, '__name__', self._fn)!r})"
