# timekeeper/database/ledger.py

from typing import Optional

from sqlalchemy import text

from timekeeper.database.models import LedgerEntry, db


class SqlLedger:
    """Address-keyed record storage; must be used inside a Flask app context."""

    def get(self, address: str) -> Optional[bytes]:
        entry = db.session.get(LedgerEntry, address)
        return entry.data if entry else None

    def put(self, address: str, data: bytes) -> None:
        entry = db.session.get(LedgerEntry, address)
        if entry is None:
            db.session.add(LedgerEntry(address=address, data=data))
        else:
            entry.data = data
        db.session.commit()

    def ping(self) -> None:
        db.session.execute(text("SELECT 1"))
