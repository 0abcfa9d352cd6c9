# Overview: Flask API routes for stock and document reports.

from flask import Blueprint, current_app, request

from ..extensions import db
from ..services import reporting_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _report_kwargs() -> dict:
    return {
        "locations": current_app.config["STOCK_LOCATIONS"],
        "global_view": current_app.config["GLOBAL_VIEW"],
    }


@reports_bp.get("/locations/<string:location>")
def location_summary_route(location: str):
    try:
        return reporting_service.location_summary(db.session, location, **_report_kwargs())
    except reporting_service.ReportError as e:
        return {"error": str(e)}, 404


@reports_bp.get("/low-stock")
def low_stock_route():
    location = request.args.get("location") or current_app.config["GLOBAL_VIEW"]
    try:
        rows = reporting_service.low_stock(db.session, location, **_report_kwargs())
    except reporting_service.ReportError as e:
        return {"error": str(e)}, 404
    return {"location": location, "items": rows, "count": len(rows)}


@reports_bp.get("/negative-stock")
def negative_stock_route():
    rows = reporting_service.negative_stock(db.session)
    return {"items": rows, "count": len(rows)}


@reports_bp.get("/pending-documents")
def pending_documents_route():
    docs = reporting_service.pending_documents(
        db.session,
        request.args.get("location"),
        global_view=current_app.config["GLOBAL_VIEW"],
    )
    return {"items": [d.to_dict(include_lines=False) for d in docs], "count": len(docs)}
