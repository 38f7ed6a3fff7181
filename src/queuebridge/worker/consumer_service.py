import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from queuebridge.exceptions import BridgeException
from queuebridge.worker.consume_loop import ConsumeLoop, ConsumeResult

logger = logging.getLogger(__name__)


class ConsumerService:
    """
    Polls a ConsumeLoop until stopped.

    A failed cycle is logged and the next one runs after ``poll_interval``;
    undeleted messages come back through the queue's own redelivery.
    """

    LOG_LOOP_INTERVAL: timedelta = timedelta(seconds=30)

    def __init__(self, consume_loop: ConsumeLoop, poll_interval: float = 1.0) -> None:
        self._consume_loop = consume_loop
        self._poll_interval = poll_interval
        self._is_running = False

        self.cycles = 0
        self.failed_cycles = 0
        self.acknowledged = 0

    @property
    def is_running(self) -> bool:
        return self._is_running

    def stop(self) -> None:
        """Stop after the current cycle."""
        logger.info("Stopping %s", self.__class__.__name__)
        self._is_running = False

    def run(self, max_cycles: Optional[int] = None) -> None:
        """
        Main polling loop.

        :param max_cycles: Stop after this many cycles, run until stopped when None.
        """
        self._is_running = True
        loop_log_time = datetime.now(timezone.utc)

        try:
            logger.info("%s starting", self.__class__.__name__)
            while self._is_running:
                if max_cycles is not None and self.cycles >= max_cycles:
                    break

                now = datetime.now(timezone.utc)
                if now - loop_log_time > self.LOG_LOOP_INTERVAL:
                    logger.info(
                        "%s still running, %d cycles, %d acknowledged",
                        self.__class__.__name__,
                        self.cycles,
                        self.acknowledged,
                    )
                    loop_log_time = now

                result = self._run_cycle()
                # keep draining while batches come back, back off otherwise
                if result is None or result.received == 0:
                    if self._is_running:
                        time.sleep(self._poll_interval)
        except KeyboardInterrupt:
            logger.info("Received shutdown signal")
        finally:
            self._is_running = False
            logger.info(
                "%s stopped after %d cycles (%d failed)",
                self.__class__.__name__,
                self.cycles,
                self.failed_cycles,
            )

    def _run_cycle(self) -> Optional[ConsumeResult]:
        self.cycles += 1
        try:
            result = self._consume_loop.run_cycle()
        except BridgeException as e:
            self.failed_cycles += 1
            logger.error("Consume cycle %d failed: %s", self.cycles, e)
            return None

        self.acknowledged += result.acknowledged
        return result
