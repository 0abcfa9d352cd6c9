# Overview: Flask API routes for customer profiles; read-only.

from flask import Blueprint, request

from ..services.reconciliation import build_engine

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers_route():
    limit = max(1, min(request.args.get("limit", default=100, type=int), 500))
    engine = build_engine()
    customers = engine.customers.list(text=request.args.get("q"), limit=limit)
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}
