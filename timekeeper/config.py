# timekeeper/config.py

import logging
import os

DEFAULT_UPDATE_PERIOD = int(os.environ.get("TIMEKEEPER_PERIOD", "20"))
DEFAULT_CONNECT_STRING = os.environ.get("TIMEKEEPER_CONNECT", "http://localhost:4004")
DEFAULT_BIND = os.environ.get("TIMEKEEPER_BIND", "0.0.0.0:4004")
SUBMIT_TIMEOUT_S = float(os.environ.get("TIMEKEEPER_SUBMIT_TIMEOUT", "10"))

# PEM private key for the publisher; a fresh in-memory key is generated when unset
PRIVATE_KEY_FILE = os.environ.get("TIMEKEEPER_PRIVATE_KEY_FILE")

# Tolerances advertised in published V2 updates
MAX_DEVIATION = int(os.environ.get("TIMEKEEPER_MAX_DEVIATION", "0"))
MAX_HISTORY = int(os.environ.get("TIMEKEEPER_MAX_HISTORY", "0"))

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Config:
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///timekeeper.sqlite')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    NTP_SERVERS = [
        s.strip()
        for s in os.environ.get(
            "NTP_SERVERS", "pool.ntp.org,time.google.com,time.windows.com,time.apple.com"
        ).split(",")
        if s.strip()
    ]
    # Maximum acceptable local clock offset in seconds
    MAX_TIME_OFFSET_S = float(os.environ.get("MAX_TIME_OFFSET_S", "0.5"))


def verbosity_to_level(verbosity: int) -> int:
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(verbosity: int = 0) -> None:
    """Set the root log level from a repeated -v count."""
    logging.basicConfig(level=verbosity_to_level(verbosity), format=LOG_FORMAT)
    logging.getLogger().setLevel(verbosity_to_level(verbosity))
