# timekeeper/namespace.py

# Ledger addressing: every participant's record lives at an address derived
# from its public key under the timekeeper namespace, next to one well-known
# global record address.

import hashlib

FAMILY_NAME = "timekeeper"
FAMILY_VERSION = "1.0"

ADDRESS_LENGTH = 70


def _sha512_hex(value: str) -> str:
    return hashlib.sha512(value.encode()).hexdigest()


def get_namespace() -> str:
    return _sha512_hex(FAMILY_NAME)[:6]


def make_address(namespace: str, key: str) -> str:
    return namespace + _sha512_hex(key)[:64]


def participant_address(public_key_hex: str) -> str:
    return make_address(get_namespace(), public_key_hex)


def is_timekeeper_address(address: str) -> bool:
    return (
        len(address) == ADDRESS_LENGTH
        and address.startswith(get_namespace())
        and all(c in "0123456789abcdef" for c in address)
    )


GLOBAL_RECORD_ADDRESS = make_address(get_namespace(), "global")
