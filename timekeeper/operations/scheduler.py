# timekeeper/operations/scheduler.py

# Periodic publisher of the local time observation. Delivery failures never
# propagate; they widen the number of periods skipped before the next attempt.

import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Optional

from timekeeper.encryption.digital_signatures import (
    ParticipantSigner,
    make_envelope,
    serialize_envelope,
)
from timekeeper.exceptions import DeliveryError
from timekeeper.records import TimeUpdate, Timestamp, Version

logger = logging.getLogger(__name__)

# The maximum number of periods that may be skipped
MAX_SKIPS = 32


class TickOutcome(Enum):
    SKIPPED = "skipped"
    DELIVERED = "delivered"
    FAILED = "failed"


class SubmissionBackoff:
    def __init__(self, max_skips: int = MAX_SKIPS):
        self.max_skips = max_skips
        self.backoff_counter = 0
        self.skip_counter = 0

    def should_skip(self) -> bool:
        """Consume one tick; True while the current backoff window is still open."""
        if self.skip_counter < self.backoff_counter:
            self.skip_counter += 1
            return True
        self.skip_counter = 0
        return False

    def record_success(self) -> None:
        if self.backoff_counter > 0:
            self.backoff_counter = max(self.backoff_counter - 1, 0)
            logger.warning(f"Successfully updated time marker after backoff, "
                           f"reducing backoff to {self.backoff_counter} intervals")

    def record_failure(self) -> None:
        self.backoff_counter = min(self.max_skips, max(1, 2 * self.backoff_counter))

    def snapshot(self) -> Dict[str, int]:
        return {
            "backoff_counter": self.backoff_counter,
            "skip_counter": self.skip_counter,
            "max_skips": self.max_skips,
        }


class SubmissionScheduler:
    def __init__(self, signer: ParticipantSigner, transport,
                 clock: Optional[Callable[[], datetime]] = None,
                 max_deviation: int = 0, max_history: int = 0,
                 backoff: Optional[SubmissionBackoff] = None):
        """
        Args:
            signer: participant identity used to sign every envelope
            transport: object exposing submit(serialized: bytes)
            clock: returns the current aware datetime; system UTC by default
            max_deviation: tolerance advertised in each V2 update
            max_history: history bound advertised in each V2 update
            backoff: skip/backoff state, fresh by default
        """
        self.signer = signer
        self.public_key_hex = signer.get_public_key_hex()
        self.transport = transport
        self.clock = clock
        self.max_deviation = max_deviation
        self.max_history = max_history
        self.backoff = backoff or SubmissionBackoff()

    def _now(self) -> datetime:
        if self.clock is not None:
            return self.clock()
        return datetime.now(timezone.utc)

    def build_update(self) -> TimeUpdate:
        return TimeUpdate(
            time_observed=Timestamp.from_datetime(self._now()),
            version=Version.V2,
            max_deviation=self.max_deviation,
            max_history=self.max_history,
        )

    def tick(self) -> TickOutcome:
        update = self.build_update()
        if self.backoff.should_skip():
            logger.debug("Skipping time update, %s/%s intervals of backoff",
                         self.backoff.skip_counter, self.backoff.backoff_counter)
            return TickOutcome.SKIPPED

        envelope = make_envelope(self.signer, update.to_bytes())
        logger.debug("Sending a participant time update %s time=%s",
                     self.public_key_hex, update.time_observed)
        try:
            self.transport.submit(serialize_envelope(envelope))
        except DeliveryError as e:
            self.backoff.record_failure()
            logger.warning(f"Error updating time records ({e}), increasing backoff to "
                           f"{self.backoff.backoff_counter} intervals")
            return TickOutcome.FAILED
        self.backoff.record_success()
        return TickOutcome.DELIVERED


class ScheduledPublisher:
    """Runs a scheduler's tick on a background thread with a fixed delay between ticks."""

    def __init__(self, scheduler: SubmissionScheduler, period: float):
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")
        self.scheduler = scheduler
        self.period = period
        self._stop = threading.Event()
        self.worker = threading.Thread(target=self._run, name="timekeeper-publisher")
        self.worker.daemon = True

    def start(self) -> None:
        logger.info(f"Publishing time updates every {self.period}s")
        self.worker.start()

    def _run(self) -> None:
        while not self._stop.wait(self.period):
            try:
                self.scheduler.tick()
            except Exception:
                logger.exception("Unexpected error in time publisher tick")

    def is_running(self) -> bool:
        return self.worker.is_alive()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop scheduling ticks and wait for an in-flight tick to finish."""
        self._stop.set()
        if self.worker.is_alive():
            self.worker.join(timeout=timeout)
