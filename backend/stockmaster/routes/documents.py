# backend/stockmaster/routes/documents.py
"""
Document API: issue, edit, cancel and browse sale receipts, transfer notes
and VAT refund forms.

Issue and edit go through the same engine call. An edit is simply an issue
whose id already exists; the engine reverts the stored version first.

Each write runs inside engine.unit_of_work(), so the save happens before the
engine lock is released. A failed save is logged and does not change the
response.
"""
from flask import Blueprint, current_app, request

from ..extensions import db
from ..services.document_schemas import DocumentValidationError, draft_from_payload, vat_breakdown
from ..services.reconciliation import (
    DocumentNotFound,
    DocumentStateError,
    DuplicateDocumentNumber,
    build_engine,
)
from ..validation import to_text


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


def _issue(payload: dict, *, document_id: str | None = None):
    try:
        draft = draft_from_payload(
            payload,
            document_id=document_id,
            locations=current_app.config["STOCK_LOCATIONS"],
            global_view=current_app.config["GLOBAL_VIEW"],
        )
    except DocumentValidationError as e:
        return {"error": str(e)}, 400

    engine = build_engine()
    try:
        with engine.unit_of_work():
            result = engine.issue(draft)
            body = result.to_dict()
            body["vat"] = vat_breakdown(result.document.total_cents, current_app.config["VAT_RATE_BPS"])
    except DuplicateDocumentNumber as e:
        db.session.rollback()
        return {"error": str(e), "existing_id": e.existing_id}, 409

    status = 201 if result.created else 200
    if result.has_warnings:
        current_app.logger.warning(
            "Document %s issued with %d skipped line(s) and %d negative stock level(s)",
            result.document.document_number,
            len(result.skipped_lines),
            len(result.negative_stock),
        )

    return body, status


@documents_bp.get("")
def list_documents():
    """
    Query params:
    - type: SALE | TRANSFER | REFUND
    - location: source or destination location
    - status: ISSUED | CANCELLED
    - q: substring match on number or customer name
    - limit: int (default 100, max 500)
    """
    limit = min(request.args.get("limit", default=100, type=int) or 100, 500)
    engine = build_engine()
    documents = engine.registry.list(
        document_type=request.args.get("type"),
        location=request.args.get("location"),
        status=request.args.get("status"),
        text=request.args.get("q"),
        limit=limit,
    )
    return {"items": [d.to_dict(include_lines=False) for d in documents], "count": len(documents)}


@documents_bp.post("")
def issue_document():
    """
    Issue a new document, or re-issue an edited one when the payload carries
    the id of a stored document.

    Returns:
        201: created
        200: existing document replaced
        400: invalid draft
        409: document number already in use
    """
    payload = request.get_json(silent=True)
    return _issue(payload)


@documents_bp.put("/<string:document_id>")
def edit_document(document_id: str):
    engine = build_engine()
    if engine.registry.find_by_id(document_id) is None:
        return {"error": "Document not found"}, 404
    payload = request.get_json(silent=True)
    return _issue(payload, document_id=document_id)


@documents_bp.get("/<string:document_id>")
def get_document(document_id: str):
    engine = build_engine()
    doc = engine.registry.find_by_id(document_id)
    if doc is None:
        return {"error": "Document not found"}, 404

    body = doc.to_dict()
    body["vat"] = vat_breakdown(doc.total_cents, current_app.config["VAT_RATE_BPS"])
    body["movements"] = [m.to_dict() for m in engine.ledger.for_reference(doc.document_number)] if not doc.is_cancelled else []
    return body


@documents_bp.post("/<string:document_id>/cancel")
def cancel_document(document_id: str):
    payload = request.get_json(silent=True) or {}
    engine = build_engine()
    try:
        with engine.unit_of_work():
            doc = engine.cancel(document_id, reason=to_text(payload.get("reason")))
            body = doc.to_dict()
    except DocumentNotFound as e:
        return {"error": str(e)}, 404
    except DocumentStateError as e:
        return {"error": str(e)}, 409

    return body, 200
