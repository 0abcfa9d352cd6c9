# backend/stockmaster/routes/products.py
"""
Master catalog routes.

Stock quantities are read-only here except through /adjust, which books a
manual ADJUST movement through the reconciliation engine.
"""
from flask import Blueprint, current_app, request

from ..extensions import db
from ..services import catalog_service
from ..services.reconciliation import UnknownProductReference, build_engine
from ..validation import ValidationError, to_int, to_text

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _known_location(location: str | None) -> bool:
    return bool(location) and location in current_app.config["STOCK_LOCATIONS"]


@products_bp.get("")
def list_products():
    """
    Query params:
    - q: substring match on name or sku
    - category: exact category
    """
    engine = build_engine()
    products = catalog_service.list_products(
        engine,
        text=request.args.get("q"),
        category=request.args.get("category"),
    )
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    initial_stock = payload.pop("stocks", None) or {}

    if not isinstance(initial_stock, dict):
        return {"error": "stocks must be an object"}, 400
    for location in initial_stock:
        if not _known_location(location):
            return {"error": f"Unknown location: {location}"}, 400

    engine = build_engine()
    try:
        cleaned_stock = {loc: to_int(qty, f"stocks.{loc}") or 0 for loc, qty in initial_stock.items()}
        with engine.unit_of_work():
            product = catalog_service.create_product(
                engine,
                payload=payload,
                initial_stock=cleaned_stock,
                default_min_quantity=current_app.config["DEFAULT_MIN_QUANTITY"],
            )
    except ValidationError as e:
        db.session.rollback()
        return {"error": str(e)}, 400

    return product.to_dict(), 201


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    engine = build_engine()
    try:
        product = catalog_service.get_product(engine, product_id)
    except catalog_service.CatalogError as e:
        return {"error": str(e)}, e.status
    return product.to_dict()


@products_bp.patch("/<int:product_id>")
@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    engine = build_engine()
    try:
        with engine.unit_of_work():
            product = catalog_service.update_product(engine, product_id, payload=payload)
    except catalog_service.CatalogError as e:
        db.session.rollback()
        return {"error": str(e)}, e.status
    except ValidationError as e:
        db.session.rollback()
        return {"error": str(e)}, 400

    return product.to_dict()


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    engine = build_engine()
    try:
        with engine.unit_of_work():
            catalog_service.delete_product(engine, product_id)
    except catalog_service.CatalogError as e:
        db.session.rollback()
        return {"error": str(e)}, e.status

    return {"ok": True}, 200


@products_bp.post("/<int:product_id>/adjust")
def adjust_product_route(product_id: int):
    """
    Manual stock correction.

    Request body:
    {
        "location": str,
        "delta": int (non-zero),
        "note": str (optional)
    }
    """
    payload = request.get_json(silent=True) or {}
    location = to_text(payload.get("location"))
    if not _known_location(location):
        return {"error": f"Unknown location: {location}"}, 400

    try:
        delta = to_int(payload.get("delta"), "delta")
    except ValidationError as e:
        return {"error": str(e)}, 400
    if not delta:
        return {"error": "delta must be a non-zero integer"}, 400

    engine = build_engine()
    try:
        with engine.unit_of_work():
            movement = engine.adjust(product_id, location, delta, note=to_text(payload.get("note")) or "Manual adjustment")
            body = {"movement": movement.to_dict(), "quantity": engine.stock.get_quantity(product_id, location)}
    except UnknownProductReference as e:
        db.session.rollback()
        return {"error": str(e)}, 404

    return body, 201
