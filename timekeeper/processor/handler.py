# timekeeper/processor/handler.py

import base64
import binascii
import hashlib
import logging
import threading
from collections import defaultdict
from typing import Dict, Tuple

from timekeeper.encryption.digital_signatures import canonical_header, verify_signature
from timekeeper.exceptions import InvalidTransaction, VersionConflict
from timekeeper.namespace import FAMILY_NAME, FAMILY_VERSION, get_namespace, participant_address
from timekeeper.processor.participant_state import ParticipantTimeState
from timekeeper.records import TimeRecord, TimeUpdate

logger = logging.getLogger(__name__)


class TimeKeeperHandler:
    """Applies signed time updates to the submitting participant's ledger record."""

    family_name = FAMILY_NAME
    family_versions = [FAMILY_VERSION]

    def __init__(self, ledger):
        self.ledger = ledger
        self.namespaces = [get_namespace()]
        self._locks_guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)

    def _lock_for(self, address: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[address]

    def apply(self, envelope: Dict) -> Tuple[str, TimeRecord]:
        """
        Verify an envelope and fold its update into the participant's record.

        Returns the participant address and the record written back to it.

        Raises:
            InvalidTransaction: the envelope is malformed, badly signed,
                addressed to the wrong record, or its update conflicts with
                the record's version. Nothing is written in that case.
        """
        header, payload = self._verify(envelope)
        update = TimeUpdate.from_bytes(payload)
        address = participant_address(header["signer_public_key"])
        if address not in header.get("outputs", []):
            raise InvalidTransaction(f"Participant address {address} not declared as an output")

        with self._lock_for(address):
            stored = self.ledger.get(address)
            if stored is None:
                state = ParticipantTimeState.create(update)
            else:
                state = ParticipantTimeState.from_record(TimeRecord.from_bytes(stored))
                try:
                    state.add_update(update)
                except VersionConflict as e:
                    logger.warning(f"Rejected update for {address}: {e}")
                    raise InvalidTransaction(str(e)) from e
            record = state.to_time_record()
            self.ledger.put(address, record.to_bytes())

        logger.debug("Participant %s time=%s", address, record.last_calculated_time)
        return address, record

    def _verify(self, envelope: Dict):
        try:
            header = envelope["header"]
            signature = envelope["header_signature"]
            payload = base64.b64decode(envelope["payload"], validate=True)
            public_key = header["signer_public_key"]
        except (KeyError, TypeError, binascii.Error) as e:
            raise InvalidTransaction(f"Malformed envelope: {e}") from e

        if header.get("family_name") != self.family_name:
            raise InvalidTransaction(f"Unknown family {header.get('family_name')}")
        if header.get("family_version") not in self.family_versions:
            raise InvalidTransaction(f"Unsupported family version {header.get('family_version')}")
        if not verify_signature(public_key, signature, canonical_header(header)):
            raise InvalidTransaction("Invalid header signature")
        if hashlib.sha512(payload).hexdigest() != header.get("payload_sha512"):
            raise InvalidTransaction("Payload hash does not match header")
        return header, payload
