# timekeeper/operations/time_sync.py

# Local clock sanity check against NTP servers. Published observations come
# from the local wall clock, so a drifting host clock shows up here first.

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

import ntplib

logger = logging.getLogger(__name__)

DEFAULT_NTP_SERVERS = [
    "pool.ntp.org",
    "time.google.com",
    "time.windows.com",
    "time.apple.com"
]

# Maximum acceptable time offset in seconds
DEFAULT_MAX_OFFSET_S = 0.5


def check_clock_offset(servers: Optional[List[str]] = None,
                       max_offset: float = DEFAULT_MAX_OFFSET_S,
                       timeout: float = 2.0) -> Dict:
    """
    Check the local clock offset against multiple NTP servers.
    Returns:
        A dictionary containing per-server offsets, the average offset, and overall health.
    """
    results: List[Dict] = []
    total_offset = 0.0
    valid_servers = 0

    client = ntplib.NTPClient()
    for server in servers or DEFAULT_NTP_SERVERS:
        try:
            response = client.request(server, version=3, timeout=timeout)
        except (ntplib.NTPException, OSError) as e:
            logger.warning(f"NTP query to {server} failed: {e}")
            results.append({
                "server": server,
                "error": str(e),
                "status": "failed"
            })
            continue
        offset = response.offset
        total_offset += offset
        valid_servers += 1
        results.append({
            "server": server,
            "offset_s": round(offset, 6),
            "time": datetime.fromtimestamp(response.tx_time, tz=timezone.utc).isoformat(),
            "status": "ok" if abs(offset) <= max_offset else "drifted"
        })

    avg_offset = round(total_offset / valid_servers, 6) if valid_servers else None
    overall_ok = avg_offset is not None and abs(avg_offset) <= max_offset

    return {
        "overall_ok": overall_ok,
        "average_offset_s": avg_offset,
        "max_allowed_offset_s": max_offset,
        "results": results
    }
