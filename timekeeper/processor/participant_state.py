# timekeeper/processor/participant_state.py

# Per-participant time state: folds ordered time updates into a bounded,
# upgrade-only record. Not thread-safe; the caller serializes access per
# participant.

import logging
from collections import deque
from typing import Iterable

from timekeeper.exceptions import VersionConflict
from timekeeper.records import (
    ActiveConfig,
    TimeRecord,
    TimeUpdate,
    Timestamp,
    V1Config,
    V2Config,
    config_version,
)

logger = logging.getLogger(__name__)

V1_HISTORY_BOUND = 100
V2_DEFAULT_HISTORY_BOUND = 10


def history_bound(config: ActiveConfig) -> int:
    """Maximum number of observations kept under the given configuration."""
    if isinstance(config, V2Config):
        return config.max_history or V2_DEFAULT_HISTORY_BOUND
    return V1_HISTORY_BOUND


class ParticipantTimeState:
    def __init__(self, config: ActiveConfig, last_calculated_time: Timestamp,
                 history: Iterable[Timestamp] = ()):
        self._config = config
        self._last_calculated_time = last_calculated_time
        self._history = deque(history)
        self._truncate()

    @classmethod
    def create(cls, update: TimeUpdate) -> "ParticipantTimeState":
        """Start a participant's state from its first update."""
        return cls(update.config, update.time_observed, [update.time_observed])

    @classmethod
    def from_record(cls, record: TimeRecord) -> "ParticipantTimeState":
        """Rebuild the state that produced a persisted record."""
        return cls(record.config, record.last_calculated_time, record.time_history)

    @property
    def version(self):
        return config_version(self._config)

    @property
    def config(self) -> ActiveConfig:
        return self._config

    def add_update(self, update: TimeUpdate) -> None:
        """
        Fold one update into the state.

        Raises:
            VersionConflict: the update is V1 and the state is already V2.
                The state is left unchanged.
        """
        incoming = update.config
        if isinstance(self._config, V2Config) and isinstance(incoming, V1Config):
            raise VersionConflict(self.version, update.version)

        if isinstance(incoming, V2Config):
            if isinstance(self._config, V1Config):
                logger.info(f"Participant upgraded to {update.version.value}: "
                            f"max_deviation={incoming.max_deviation} max_history={incoming.max_history}")
            self._config = incoming

        # the calculated time never runs backwards
        self._last_calculated_time = max(self._last_calculated_time, update.time_observed)
        self._history.append(update.time_observed)
        self._truncate()

    def _truncate(self) -> None:
        bound = history_bound(self._config)
        while len(self._history) > bound:
            self._history.popleft()

    def to_time_record(self) -> TimeRecord:
        return TimeRecord(
            version=self.version,
            last_calculated_time=self._last_calculated_time,
            time_history=tuple(self._history),
            max_deviation=self._config.max_deviation,
            max_history=self._config.max_history,
        )
