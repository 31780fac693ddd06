import base64
import json
import threading
from datetime import datetime, timezone

import pytest

from timekeeper.encryption.digital_signatures import ParticipantSigner
from timekeeper.exceptions import DeliveryError
from timekeeper.operations.scheduler import (
    MAX_SKIPS,
    ScheduledPublisher,
    SubmissionBackoff,
    SubmissionScheduler,
    TickOutcome,
)
from timekeeper.records import TimeUpdate, Version


class FakeTransport:
    """Records submissions; fails while `failing` is True."""

    def __init__(self):
        self.failing = False
        self.submitted = []

    def submit(self, serialized):
        if self.failing:
            raise DeliveryError("validator unreachable")
        self.submitted.append(serialized)
        return "ack"


FIXED_NOW = datetime(2025, 10, 23, 12, 0, 0, 250000, tzinfo=timezone.utc)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def scheduler(transport):
    return SubmissionScheduler(ParticipantSigner(), transport, clock=lambda: FIXED_NOW)


def fail_times(scheduler, k):
    """Drive k consecutive failed submission attempts, skipping ticks as needed."""
    attempts = 0
    while attempts < k:
        if scheduler.tick() is TickOutcome.FAILED:
            attempts += 1


def test_backoff_doubles_on_failure():
    backoff = SubmissionBackoff()
    seen = []
    for _ in range(3):
        backoff.record_failure()
        seen.append(backoff.backoff_counter)
    assert seen == [1, 2, 4]
    backoff.record_success()
    assert backoff.backoff_counter == 3


@pytest.mark.parametrize("k", [1, 2, 3, 5, 6, 7, 10])
def test_backoff_after_k_failures(k):
    backoff = SubmissionBackoff()
    for _ in range(k):
        backoff.record_failure()
    assert backoff.backoff_counter == min(MAX_SKIPS, 2 ** (k - 1))


def test_success_without_backoff_is_noop():
    backoff = SubmissionBackoff()
    backoff.record_success()
    assert backoff.backoff_counter == 0


def test_success_decrements_by_one():
    backoff = SubmissionBackoff()
    for _ in range(6):
        backoff.record_failure()
    assert backoff.backoff_counter == 32
    backoff.record_success()
    assert backoff.backoff_counter == 31


def test_tick_delivers_signed_v2_update(scheduler, transport):
    assert scheduler.tick() is TickOutcome.DELIVERED
    assert len(transport.submitted) == 1
    envelope = json.loads(transport.submitted[0])
    update = TimeUpdate.from_bytes(base64.b64decode(envelope["payload"]))
    assert update.version == Version.V2
    assert update.time_observed.to_datetime() == FIXED_NOW
    assert envelope["header"]["signer_public_key"] == scheduler.signer.get_public_key_hex()


def test_three_failures_then_success(scheduler, transport):
    transport.failing = True
    counters = []
    for _ in range(3):
        fail_times(scheduler, 1)
        counters.append(scheduler.backoff.backoff_counter)
    assert counters == [1, 2, 4]

    transport.failing = False
    outcomes = [scheduler.tick() for _ in range(5)]
    # four throttled ticks, then the next attempt goes through
    assert outcomes == [TickOutcome.SKIPPED] * 4 + [TickOutcome.DELIVERED]
    assert scheduler.backoff.backoff_counter == 3


@pytest.mark.parametrize("failures", [1, 2, 3, 4])
def test_exactly_backoff_ticks_are_skipped(scheduler, transport, failures):
    transport.failing = True
    fail_times(scheduler, failures)
    expected_skips = scheduler.backoff.backoff_counter

    skipped = 0
    while scheduler.tick() is TickOutcome.SKIPPED:
        skipped += 1
    assert skipped == expected_skips


def test_delivery_error_never_propagates(scheduler, transport):
    transport.failing = True
    for _ in range(200):
        scheduler.tick()
    assert scheduler.backoff.backoff_counter == MAX_SKIPS
    assert transport.submitted == []


def test_silence_is_capped(scheduler, transport):
    transport.failing = True
    fail_times(scheduler, 10)
    outcomes = [scheduler.tick() for _ in range(MAX_SKIPS + 1)]
    assert outcomes.count(TickOutcome.SKIPPED) == MAX_SKIPS
    assert outcomes[-1] is TickOutcome.FAILED


def test_advertised_tolerances(transport):
    scheduler = SubmissionScheduler(ParticipantSigner(), transport, max_deviation=5, max_history=30)
    update = scheduler.build_update()
    assert (update.max_deviation, update.max_history) == (5, 30)


def test_default_clock_is_utc(transport):
    scheduler = SubmissionScheduler(ParticipantSigner(), transport)
    before = datetime.now(timezone.utc)
    observed = scheduler.build_update().time_observed.to_datetime()
    assert observed.tzinfo is not None
    assert abs((observed - before).total_seconds()) < 5


def test_publisher_ticks_and_shuts_down(scheduler, transport):
    ticked = threading.Event()
    original_tick = scheduler.tick

    def tick():
        outcome = original_tick()
        ticked.set()
        return outcome

    scheduler.tick = tick
    publisher = ScheduledPublisher(scheduler, period=0.01)
    publisher.start()
    assert ticked.wait(timeout=5)
    publisher.shutdown(timeout=5)
    assert not publisher.is_running()
    assert len(transport.submitted) >= 1


def test_shutdown_waits_for_in_flight_tick():
    started = threading.Event()
    release = threading.Event()

    class SlowTransport(FakeTransport):
        def submit(self, serialized):
            started.set()
            release.wait(timeout=5)
            return super().submit(serialized)

    slow = SlowTransport()
    scheduler = SubmissionScheduler(ParticipantSigner(), slow)
    publisher = ScheduledPublisher(scheduler, period=0.01)
    publisher.start()
    assert started.wait(timeout=5)

    stopper = threading.Thread(target=publisher.shutdown)
    stopper.start()
    release.set()
    stopper.join(timeout=5)
    assert not publisher.is_running()
    assert len(slow.submitted) == 1


def test_publisher_rejects_non_positive_period(scheduler):
    with pytest.raises(ValueError):
        ScheduledPublisher(scheduler, period=0)
