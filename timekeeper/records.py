# timekeeper/records.py

# Versioned time update / time record schema shared by the publisher and the
# record-folding service. Everything serializes to canonical JSON bytes so the
# same bytes can be hashed and signed on one side and verified on the other.

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Tuple, Union

from timekeeper.exceptions import InvalidTransaction

NANOS_PER_SECOND = 1_000_000_000

# 0001-01-01T00:00:00Z .. 9999-12-31T23:59:59Z
MIN_SECONDS = -62135596800
MAX_SECONDS = 253402300799
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Version(Enum):
    """Protocol versions of a time update."""
    V1 = "V_1_0"
    V2 = "V_2_0"


@dataclass(frozen=True, order=True)
class Timestamp:
    seconds: int
    nanos: int = 0

    def __post_init__(self):
        if not MIN_SECONDS <= self.seconds <= MAX_SECONDS:
            raise ValueError(f"seconds out of range: {self.seconds}")
        if not 0 <= self.nanos < NANOS_PER_SECOND:
            raise ValueError(f"nanos out of range: {self.nanos}")

    @classmethod
    def from_seconds(cls, seconds: int) -> "Timestamp":
        return cls(int(seconds), 0)

    @classmethod
    def from_datetime(cls, dt: datetime) -> "Timestamp":
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        delta = dt - EPOCH
        seconds = delta.days * 86400 + delta.seconds
        return cls(seconds, delta.microseconds * 1000)

    def to_datetime(self) -> datetime:
        return EPOCH + timedelta(seconds=self.seconds, microseconds=self.nanos // 1000)

    def to_dict(self) -> Dict[str, int]:
        return {"seconds": self.seconds, "nanos": self.nanos}

    @classmethod
    def from_dict(cls, data: Dict) -> "Timestamp":
        return cls(int(data["seconds"]), int(data.get("nanos", 0)))


@dataclass(frozen=True)
class V1Config:
    """V1 updates carry no tolerances; the record reports zeros."""
    max_deviation: int = field(default=0, init=False)
    max_history: int = field(default=0, init=False)


@dataclass(frozen=True)
class V2Config:
    max_deviation: int = 0
    max_history: int = 0


ActiveConfig = Union[V1Config, V2Config]


def config_version(config: ActiveConfig) -> Version:
    return Version.V2 if isinstance(config, V2Config) else Version.V1


def _non_negative(name: str, value) -> int:
    value = int(value)
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


def _dumps(data: Dict) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode()


def _loads(payload: bytes, what: str) -> Dict:
    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidTransaction(f"Undecodable {what}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidTransaction(f"Undecodable {what}: expected an object")
    return data


@dataclass(frozen=True)
class TimeUpdate:
    """One time observation submitted by a participant."""
    time_observed: Timestamp
    version: Version = Version.V1
    max_deviation: int = 0
    max_history: int = 0

    def __post_init__(self):
        _non_negative("max_deviation", self.max_deviation)
        _non_negative("max_history", self.max_history)

    @property
    def config(self) -> ActiveConfig:
        # bound fields are meaningless under V1
        if self.version is Version.V2:
            return V2Config(self.max_deviation, self.max_history)
        return V1Config()

    def to_dict(self) -> Dict:
        return {
            "version": self.version.value,
            "time_observed": self.time_observed.to_dict(),
            "max_deviation": self.max_deviation,
            "max_history": self.max_history,
        }

    def to_bytes(self) -> bytes:
        return _dumps(self.to_dict())

    @classmethod
    def from_bytes(cls, payload: bytes) -> "TimeUpdate":
        data = _loads(payload, "time update")
        try:
            return cls(
                time_observed=Timestamp.from_dict(data["time_observed"]),
                version=Version(data.get("version", Version.V1.value)),
                max_deviation=int(data.get("max_deviation", 0)),
                max_history=int(data.get("max_history", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidTransaction(f"Malformed time update: {e}") from e


@dataclass(frozen=True)
class TimeRecord:
    """Persisted per-participant state after folding observations."""
    version: Version
    last_calculated_time: Timestamp
    time_history: Tuple[Timestamp, ...]
    max_deviation: int = 0
    max_history: int = 0

    @property
    def config(self) -> ActiveConfig:
        if self.version is Version.V2:
            return V2Config(self.max_deviation, self.max_history)
        return V1Config()

    def to_dict(self) -> Dict:
        return {
            "version": self.version.value,
            "last_calculated_time": self.last_calculated_time.to_dict(),
            "time_history": [ts.to_dict() for ts in self.time_history],
            "max_deviation": self.max_deviation,
            "max_history": self.max_history,
        }

    def to_bytes(self) -> bytes:
        return _dumps(self.to_dict())

    @classmethod
    def from_bytes(cls, payload: bytes) -> "TimeRecord":
        data = _loads(payload, "time record")
        try:
            return cls(
                version=Version(data.get("version", Version.V1.value)),
                last_calculated_time=Timestamp.from_dict(data["last_calculated_time"]),
                time_history=tuple(Timestamp.from_dict(t) for t in data.get("time_history", [])),
                max_deviation=int(data.get("max_deviation", 0)),
                max_history=int(data.get("max_history", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidTransaction(f"Malformed time record: {e}") from e
