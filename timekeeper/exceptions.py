# timekeeper/exceptions.py


class TimeKeeperError(Exception):
    """Base class for every error raised by the timekeeper package."""


class VersionConflict(TimeKeeperError):
    """An update carries an older protocol version than the participant's record."""

    def __init__(self, current, incoming):
        self.current = current
        self.incoming = incoming
        super().__init__(
            f"Update version {incoming.value} is older than record version {current.value}"
        )


class DeliveryError(TimeKeeperError):
    """A submission did not reach the record-folding service or was not acknowledged."""


class InvalidTransaction(TimeKeeperError):
    """A submitted envelope or payload was rejected before or during folding."""
