# timekeeper/encryption/digital_signatures.py

import base64
import hashlib
import json
import secrets
from typing import Dict, List, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from timekeeper.namespace import (
    FAMILY_NAME,
    FAMILY_VERSION,
    GLOBAL_RECORD_ADDRESS,
    participant_address,
)

# Ed25519 participant identity: signs outgoing envelopes, verifies incoming ones


class ParticipantSigner:
    def __init__(self, private_key: Optional[Ed25519PrivateKey] = None):
        self.private_key = private_key or Ed25519PrivateKey.generate()
        self.public_key = self.private_key.public_key()

    @classmethod
    def from_pem(cls, pem_str: str) -> "ParticipantSigner":
        key = serialization.load_pem_private_key(pem_str.encode(), password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError("Private key is not an Ed25519 key")
        return cls(key)

    @classmethod
    def from_file(cls, path: str) -> "ParticipantSigner":
        with open(path, 'r') as f:
            return cls.from_pem(f.read())

    def get_public_key_hex(self) -> str:
        raw = self.public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw)
        return raw.hex()

    def get_private_key_pem(self) -> str:
        pem = self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption())
        return pem.decode()

    @property
    def address(self) -> str:
        return participant_address(self.get_public_key_hex())

    def sign(self, data: bytes) -> str:
        return self.private_key.sign(data).hex()


def verify_signature(public_key_hex: str, signature_hex: str, data: bytes) -> bool:
    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
        public_key.verify(bytes.fromhex(signature_hex), data)
        return True
    except (InvalidSignature, ValueError, TypeError):
        return False


def canonical_header(header: Dict) -> bytes:
    return json.dumps(header, sort_keys=True, separators=(",", ":")).encode()


def make_envelope(signer: ParticipantSigner, payload: bytes,
                  inputs: Optional[List[str]] = None,
                  outputs: Optional[List[str]] = None) -> Dict:
    """
    Wrap a payload into a signed transaction envelope.

    The participant's own address and the global record address are declared
    as both inputs and outputs unless given explicitly.
    """
    addresses = [signer.address, GLOBAL_RECORD_ADDRESS]
    header = {
        "family_name": FAMILY_NAME,
        "family_version": FAMILY_VERSION,
        "signer_public_key": signer.get_public_key_hex(),
        "inputs": list(inputs) if inputs is not None else list(addresses),
        "outputs": list(outputs) if outputs is not None else list(addresses),
        "payload_sha512": hashlib.sha512(payload).hexdigest(),
        "nonce": secrets.token_hex(16),
    }
    return {
        "header": header,
        "header_signature": signer.sign(canonical_header(header)),
        "payload": base64.b64encode(payload).decode(),
    }


def serialize_envelope(envelope: Dict) -> bytes:
    return json.dumps(envelope, sort_keys=True).encode()
