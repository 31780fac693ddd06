# timekeeper/operations/health_monitor.py

# Liveness/readiness checks for the timekeeper service (ledger, clock, publisher)

import logging
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from timekeeper.operations.time_sync import check_clock_offset

logger = logging.getLogger(__name__)


def check_ledger(ledger) -> Dict:
    try:
        ledger.ping()
        return {"ok": True, "detail": "ledger ok"}
    except SQLAlchemyError as e:
        logger.error(f"Ledger health probe failed: {e}")
        return {"ok": False, "error": str(e)}


def check_publisher(scheduler) -> Dict:
    state = scheduler.backoff.snapshot()
    # degraded once the backoff has reached its ceiling
    state["ok"] = state["backoff_counter"] < state["max_skips"]
    return state


def check_health(ledger, servers=None, max_offset: float = 0.5, scheduler=None) -> Dict:
    """Aggregate overall service health."""
    res: Dict[str, Optional[Dict]] = {
        "ledger": check_ledger(ledger),
        "time": check_clock_offset(servers, max_offset),
        "publisher": check_publisher(scheduler) if scheduler is not None else None,
    }
    overall = res["ledger"]["ok"] and res["time"]["overall_ok"]
    if res["publisher"] is not None:
        overall = overall and res["publisher"]["ok"]
    res["overall_ok"] = overall
    return res
