# timekeeper/operations/transport.py

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from timekeeper.exceptions import DeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ack:
    status: str
    address: Optional[str] = None


class HttpTransport:
    """Delivers serialized envelopes to a record-folding service over HTTP."""

    def __init__(self, endpoint: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def submit_url(self) -> str:
        return f"{self.endpoint}/batches"

    def submit(self, serialized: bytes) -> Ack:
        try:
            response = self.session.post(
                self.submit_url,
                data=serialized,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except InterruptedError as e:
            raise DeliveryError(f"Submission interrupted. Details: {e}") from e
        except requests.RequestException as e:
            raise DeliveryError(f"Connection error to {self.submit_url}. Details: {e}") from e

        try:
            body = response.json()
            status = body.get("status")
        except (ValueError, AttributeError) as e:
            raise DeliveryError(
                f"Malformed response from {self.submit_url} (HTTP {response.status_code})"
            ) from e

        if status != "OK":
            logger.warning(f"Submit response resulted in error: {status} {body.get('error', '')}")
            raise DeliveryError(f"Submit response resulted in error: {status}")
        logger.debug(f"Update accepted for {body.get('address')}")
        return Ack(status=status, address=body.get("address"))

    def close(self) -> None:
        self.session.close()
