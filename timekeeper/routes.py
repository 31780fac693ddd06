# timekeeper/routes.py

# HTTP surface of the record-folding service

import json
import logging

from flask import Blueprint, current_app, jsonify, request

from timekeeper.exceptions import InvalidTransaction
from timekeeper.namespace import is_timekeeper_address
from timekeeper.operations.health_monitor import check_health, check_ledger
from timekeeper.records import TimeRecord

logger = logging.getLogger(__name__)

bp = Blueprint('timekeeper', __name__)


def _handler():
    return current_app.extensions['timekeeper.handler']


@bp.post('/batches')
def submit_batch():
    try:
        envelope = json.loads(request.get_data())
    except (UnicodeDecodeError, ValueError) as e:
        return jsonify({"status": "MALFORMED", "error": str(e)}), 400

    try:
        address, record = _handler().apply(envelope)
    except InvalidTransaction as e:
        logger.info(f"Rejected batch: {e}")
        return jsonify({"status": "INVALID_TRANSACTION", "error": str(e)}), 400
    return jsonify({
        "status": "OK",
        "address": address,
        "last_calculated_time": record.last_calculated_time.to_dict(),
    }), 200


@bp.get('/state/<address>')
def get_state(address):
    if not is_timekeeper_address(address):
        return jsonify({"error": "not a timekeeper address"}), 400
    data = _handler().ledger.get(address)
    if data is None:
        return jsonify({"error": "no record at address"}), 404
    return jsonify(TimeRecord.from_bytes(data).to_dict()), 200


@bp.get('/health')
def liveness():
    res = check_health(
        _handler().ledger,
        servers=current_app.config['NTP_SERVERS'],
        max_offset=current_app.config['MAX_TIME_OFFSET_S'],
        scheduler=current_app.extensions.get('timekeeper.scheduler'),
    )
    code = 200 if res["overall_ok"] else 503
    return jsonify(res), code


@bp.get('/ready')
def readiness():
    # readiness: ledger only, skips external NTP
    ledger = check_ledger(_handler().ledger)
    res = {"ledger": ledger, "overall_ok": ledger["ok"]}
    code = 200 if ledger["ok"] else 503
    return jsonify(res), code
