# backend/stockmaster/routes/imports.py
"""
Structured import endpoint.

Request body:
{
    "mode": "MASTER_PRICELIST" | "SHOP_RESTOCK",
    "location": str (required for SHOP_RESTOCK),
    "rows": [{"sku", "name", "price_cents", "promo_price_cents", "quantity",
              "category", "offers", "description"}, ...]
}

The whole batch is applied or none of it is: a bad row rejects the request
before anything is written.
"""
from flask import Blueprint, current_app, request

from ..extensions import db
from ..services.import_service import ImportRow, ImportRowError, run_import
from ..services.reconciliation import build_engine
from ..validation import to_text

imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports")


@imports_bp.post("")
def create_import_route():
    payload = request.get_json(silent=True) or {}
    raw_rows = payload.get("rows")
    if not isinstance(raw_rows, list) or not raw_rows:
        return {"error": "rows must be a non-empty list"}, 400

    location = to_text(payload.get("location"))
    if location is not None and location not in current_app.config["STOCK_LOCATIONS"]:
        return {"error": f"Unknown location: {location}"}, 400

    try:
        rows = [ImportRow.from_dict(raw, i) for i, raw in enumerate(raw_rows, start=1)]
        engine = build_engine()
        with engine.unit_of_work():
            summary = run_import(
                engine,
                rows=rows,
                mode=payload.get("mode"),
                location=location,
                default_min_quantity=current_app.config["DEFAULT_MIN_QUANTITY"],
            )
    except ImportRowError as e:
        db.session.rollback()
        return {"error": str(e)}, 400

    return summary.to_dict(), 201
