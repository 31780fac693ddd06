# timekeeper/database/models.py

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc)


class LedgerEntry(db.Model):
    __tablename__ = 'ledger_entries'
    address = db.Column(db.String(70), primary_key=True)
    data = db.Column(db.LargeBinary, nullable=False)  # serialized TimeRecord
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f'<LedgerEntry {self.address}>'
