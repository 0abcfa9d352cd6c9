"""
Document drafts: the fully-formed input handed to the reconciliation engine.

WHY: The document type used to be implied by which optional fields were
filled in. Here it is an explicit enum and each variant's required fields are
checked when the draft is constructed, before the engine touches any state:

- SALE / REFUND: stock leaves source_location. No destination allowed.
- TRANSFER: stock leaves source_location and arrives at a destination, taken
  per line (LineDraft.dest_location) or from the document (dest_location).
  Every line must resolve to a destination different from the source.

The engine does not validate form fields (names, payment data). Only the
structure needed to compute stock effects is checked here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable
from uuid import uuid4

from ..models import DOCUMENT_TYPE_TRANSFER, DOCUMENT_TYPES, normalize_document_number, normalize_sku
from ..validation import ValidationError, to_cents, to_int, to_text
from stockmaster.time_utils import normalize_datetime, parse_iso_datetime


GLOBAL_VIEW = "Global"


class DocumentValidationError(ValidationError):
    """Raised when a draft is structurally unusable."""


def apply_discount(subtotal_cents: int, discount_bps: int) -> int:
    """Total after a percentage discount, nearest-cent (half-up)."""
    discounted = subtotal_cents * (10_000 - discount_bps)
    return (discounted + 5_000) // 10_000


def vat_breakdown(total_cents: int, vat_rate_bps: int) -> dict:
    """
    Split a VAT-inclusive total into net and VAT portions.

    Prices are VAT-inclusive, so net = total / (1 + rate).
    """
    net = (total_cents * 10_000 + (10_000 + vat_rate_bps) // 2) // (10_000 + vat_rate_bps)
    return {
        "total_cents": total_cents,
        "net_cents": net,
        "vat_cents": total_cents - net,
        "vat_rate_bps": vat_rate_bps,
    }


@dataclass
class LineDraft:
    product_id: int | None
    quantity: int
    sku: str = ""
    name: str = ""
    unit_price_cents: int = 0
    promo_price_cents: int | None = None
    dest_location: str | None = None

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise DocumentValidationError("line quantity must be an integer")
        if self.quantity <= 0:
            raise DocumentValidationError("line quantity must be positive")
        if self.unit_price_cents is None:
            self.unit_price_cents = 0
        if self.unit_price_cents < 0:
            raise DocumentValidationError("unit_price_cents must be >= 0")
        self.sku = normalize_sku(self.sku)
        self.name = (self.name or "").strip()
        self.dest_location = to_text(self.dest_location)

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass
class DocumentDraft:
    document_type: str
    document_number: str
    source_location: str
    lines: list[LineDraft]
    id: str = field(default_factory=lambda: uuid4().hex)
    dest_location: str | None = None
    occurred_at: datetime | None = None

    salesperson: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    customer_address: str | None = None

    # None means "derive from lines"
    subtotal_cents: int | None = None
    discount_bps: int = 0
    total_cents: int | None = None

    payment_method: str | None = None
    payment_reference: str | None = None
    invoice_number: str | None = None
    transfer_note_number: str | None = None
    footer_note: str | None = None
    visitor: dict | None = None

    def __post_init__(self):
        self.id = to_text(self.id) or uuid4().hex
        if len(self.id) > 36:
            raise DocumentValidationError("id exceeds max length 36")

        self.document_type = (self.document_type or "").strip().upper()
        if self.document_type not in DOCUMENT_TYPES:
            raise DocumentValidationError(
                f"document_type must be one of {', '.join(DOCUMENT_TYPES)}"
            )

        self.document_number = (self.document_number or "").strip()
        if not self.document_number:
            raise DocumentValidationError("document_number is required")
        if len(self.document_number) > 64:
            raise DocumentValidationError("document_number exceeds max length 64")

        self.source_location = to_text(self.source_location)
        if not self.source_location:
            raise DocumentValidationError("source_location is required")
        self.dest_location = to_text(self.dest_location)

        self.lines = list(self.lines or [])
        if not self.lines:
            raise DocumentValidationError("document must have at least one line")

        if self.document_type == DOCUMENT_TYPE_TRANSFER:
            for number, line in enumerate(self.lines, start=1):
                dest = line.dest_location or self.dest_location
                if not dest:
                    raise DocumentValidationError(f"line {number}: TRANSFER requires a destination")
                if dest == self.source_location:
                    raise DocumentValidationError(f"line {number}: cannot transfer to the same location")
        else:
            if self.dest_location or any(line.dest_location for line in self.lines):
                raise DocumentValidationError(f"{self.document_type} documents do not take a destination")

        if self.discount_bps is None:
            self.discount_bps = 0
        if not 0 <= self.discount_bps <= 10_000:
            raise DocumentValidationError("discount_bps must be between 0 and 10000")

        if self.subtotal_cents is None:
            self.subtotal_cents = sum(line.line_total_cents for line in self.lines)
        if self.total_cents is None:
            self.total_cents = apply_discount(self.subtotal_cents, self.discount_bps)
        if self.total_cents < 0:
            raise DocumentValidationError("total_cents must be >= 0")

        self.occurred_at = normalize_datetime(self.occurred_at)
        self.customer_name = to_text(self.customer_name)
        self.customer_email = to_text(self.customer_email)

    @property
    def number_key(self) -> str:
        return normalize_document_number(self.document_number)

    def destination_for(self, line: LineDraft) -> str | None:
        if self.document_type != DOCUMENT_TYPE_TRANSFER:
            return None
        return line.dest_location or self.dest_location

    def locations(self) -> set[str]:
        found = {self.source_location}
        for line in self.lines:
            dest = self.destination_for(line)
            if dest:
                found.add(dest)
        return found

    def check_locations(self, allowed: Iterable[str] | None, global_view: str = GLOBAL_VIEW) -> None:
        """Reject the aggregate view and, when given, locations outside the allowed set."""
        allowed_set = set(allowed) if allowed is not None else None
        for location in sorted(self.locations()):
            if location == global_view:
                raise DocumentValidationError(f"{global_view} is an aggregate view and holds no stock")
            if allowed_set is not None and location not in allowed_set:
                raise DocumentValidationError(f"Unknown location: {location}")

def _line_from_payload(raw: Any, number: int) -> LineDraft:
    if not isinstance(raw, dict):
        raise DocumentValidationError(f"line {number} must be an object")
    try:
        quantity = to_int(raw.get("quantity"), f"lines[{number}].quantity")
        product_id = to_int(raw.get("product_id"), f"lines[{number}].product_id")
        unit_price = to_cents(raw.get("unit_price_cents"), f"lines[{number}].unit_price_cents")
        promo_price = to_cents(raw.get("promo_price_cents"), f"lines[{number}].promo_price_cents")
    except ValidationError as exc:
        raise DocumentValidationError(str(exc)) from exc

    if quantity is None:
        raise DocumentValidationError(f"line {number}: quantity is required")

    return LineDraft(
        product_id=product_id,
        quantity=quantity,
        sku=raw.get("sku") or "",
        name=raw.get("name") or "",
        unit_price_cents=unit_price or 0,
        promo_price_cents=promo_price,
        dest_location=raw.get("dest_location"),
    )


def draft_from_payload(
    payload: dict,
    *,
    document_id: str | None = None,
    locations: Iterable[str] | None = None,
    global_view: str = GLOBAL_VIEW,
) -> DocumentDraft:
    """
    Build a DocumentDraft from API JSON.

    Customer fields may be flat (customer_name, ...) or nested under
    "customer". document_id, when given, wins over any id in the payload.
    """
    if not isinstance(payload, dict):
        raise DocumentValidationError("Invalid JSON payload")

    raw_lines = payload.get("lines")
    if not isinstance(raw_lines, list):
        raise DocumentValidationError("lines must be a list")
    lines = [_line_from_payload(raw, i) for i, raw in enumerate(raw_lines, start=1)]

    customer = payload.get("customer") or {}
    if not isinstance(customer, dict):
        raise DocumentValidationError("customer must be an object")

    occurred_raw = payload.get("occurred_at") or payload.get("date")
    try:
        occurred_at = parse_iso_datetime(occurred_raw) if isinstance(occurred_raw, str) else None
        subtotal = to_cents(payload.get("subtotal_cents"), "subtotal_cents")
        total = to_cents(payload.get("total_cents"), "total_cents")
        discount = to_int(payload.get("discount_bps"), "discount_bps")
    except ValueError as exc:
        raise DocumentValidationError(str(exc)) from exc

    visitor = payload.get("visitor")
    if visitor is not None and not isinstance(visitor, dict):
        raise DocumentValidationError("visitor must be an object")

    draft = DocumentDraft(
        id=document_id or payload.get("id"),
        document_type=payload.get("document_type") or payload.get("type") or "",
        document_number=payload.get("document_number") or "",
        source_location=payload.get("source_location") or "",
        dest_location=payload.get("dest_location"),
        occurred_at=occurred_at,
        lines=lines,
        salesperson=to_text(payload.get("salesperson")),
        customer_name=customer.get("name", payload.get("customer_name")),
        customer_email=customer.get("email", payload.get("customer_email")),
        customer_phone=to_text(customer.get("phone", payload.get("customer_phone"))),
        customer_address=to_text(customer.get("address", payload.get("customer_address"))),
        subtotal_cents=subtotal,
        discount_bps=discount or 0,
        total_cents=total,
        payment_method=to_text(payload.get("payment_method")),
        payment_reference=to_text(payload.get("payment_reference")),
        invoice_number=to_text(payload.get("invoice_number")),
        transfer_note_number=to_text(payload.get("transfer_note_number")),
        footer_note=to_text(payload.get("footer_note")),
        visitor=visitor,
    )
    draft.check_locations(locations, global_view)
    return draft
