# Overview: Flask API routes for the movement ledger; read-only.

from flask import Blueprint, request, jsonify

from ..services.reconciliation import build_engine
from stockmaster.time_utils import parse_iso_datetime

"""
Time semantics:
- from/to accept ISO-8601 datetimes with Z/offsets; normalized to UTC-naive.
- Both bounds are inclusive. A bare date in `to` means the whole day.
"""

movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")


@movements_bp.get("")
def list_movements_route():
    limit = request.args.get("limit", default=200, type=int)
    limit = max(1, min(limit, 1000))

    from_raw = request.args.get("from")
    to_raw = request.args.get("to")
    try:
        date_from = parse_iso_datetime(from_raw)
        date_to = parse_iso_datetime(to_raw)
    except ValueError:
        return jsonify({"error": "from and to must be ISO-8601 datetimes"}), 400

    if date_to is not None and to_raw and len(to_raw.strip()) == 10:
        date_to = date_to.replace(hour=23, minute=59, second=59, microsecond=999999)

    engine = build_engine()
    rows = engine.ledger.recent(
        limit=limit,
        product_id=request.args.get("product_id", type=int),
        location=request.args.get("location"),
        date_from=date_from,
        date_to=date_to,
        text=request.args.get("q"),
    )
    return jsonify({"items": [m.to_dict() for m in rows], "limit": limit}), 200
