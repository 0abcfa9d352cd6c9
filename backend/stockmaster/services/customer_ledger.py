# Overview: Customer ledger; profiles and lifetime spend derived from issued documents.

from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models import Customer, DOCUMENT_TYPE_REFUND, DOCUMENT_TYPE_SALE
from stockmaster.time_utils import utcnow

logger = logging.getLogger(__name__)

"""
Customer Ledger Rules

- Only SALE and REFUND documents with a named, non-guest customer count.
- Spend is incremental: an edit moves lifetime_spend by (new - old) total.
  It is never recomputed from the document history.
- If an edit changes which profile the document resolves to, the old total
  leaves the old profile and the new total lands on the new one.
- total_visits counts first issues only; edits, cancels and re-issues of a
  cancelled document leave it alone.
"""

_CUSTOMER_DOCUMENT_TYPES = (DOCUMENT_TYPE_SALE, DOCUMENT_TYPE_REFUND)


class CustomerLedger:
    def __init__(self, session: Session, guest_name: str = "Guest"):
        self._session = session
        self._guest_key = (guest_name or "").strip().lower()

    def qualifies(self, doc) -> bool:
        """doc is anything with document_type and customer_name (Document or DocumentDraft)."""
        if doc is None or doc.document_type not in _CUSTOMER_DOCUMENT_TYPES:
            return False
        name = (doc.customer_name or "").strip()
        return bool(name) and name.lower() != self._guest_key

    def match(self, name: str | None, email: str | None = None) -> Customer | None:
        name = (name or "").strip()
        email = (email or "").strip()
        conditions = []
        if name:
            conditions.append(Customer.name == name)
        if email:
            conditions.append(Customer.email == email)
        if not conditions:
            return None
        return (
            self._session.query(Customer)
            .filter(or_(*conditions))
            .order_by(Customer.id)
            .first()
        )

    def _resolve(self, doc) -> Customer | None:
        if not self.qualifies(doc):
            return None
        return self.match(doc.customer_name, doc.customer_email)

    def _resolve_or_create(self, doc) -> Customer:
        profile = self._resolve(doc)
        if profile is None:
            profile = Customer(
                name=doc.customer_name.strip(),
                lifetime_spend_cents=0,
                total_visits=0,
            )
            self._session.add(profile)
            logger.info("Created customer profile %r", profile.name)

        if doc.customer_email:
            profile.email = doc.customer_email
        if doc.customer_phone:
            profile.phone = doc.customer_phone
        if doc.customer_address:
            profile.address = doc.customer_address
        return profile

    def record_document(self, new, old=None, *, first_issue: bool | None = None) -> Customer | None:
        """
        Apply one issue of `new`, replacing the effect of `old` if given.

        old must be the live previous version as it was before the edit, or
        None when nothing is live. first_issue defaults to `old is None`; pass
        False when re-issuing a cancelled document so the visit is not counted
        twice. Returns the profile the new version resolved to.
        """
        if first_issue is None:
            first_issue = old is None
        old_profile = self._resolve(old)
        new_profile = self._resolve_or_create(new) if self.qualifies(new) else None

        old_total = int(old.total_cents or 0) if old_profile is not None else 0
        new_total = int(new.total_cents or 0) if new_profile is not None else 0

        if old_profile is not None and new_profile is not None and old_profile is new_profile:
            new_profile.lifetime_spend_cents = int(new_profile.lifetime_spend_cents or 0) + new_total - old_total
        else:
            if old_profile is not None:
                old_profile.lifetime_spend_cents = int(old_profile.lifetime_spend_cents or 0) - old_total
            if new_profile is not None:
                new_profile.lifetime_spend_cents = int(new_profile.lifetime_spend_cents or 0) + new_total

        if new_profile is not None:
            if first_issue:
                new_profile.total_visits = int(new_profile.total_visits or 0) + 1
            new_profile.last_visit_at = utcnow()

        self._session.flush()
        return new_profile

    def reverse_document(self, old) -> Customer | None:
        """Remove a cancelled document's total from its customer."""
        profile = self._resolve(old)
        if profile is None:
            return None
        profile.lifetime_spend_cents = int(profile.lifetime_spend_cents or 0) - int(old.total_cents or 0)
        self._session.flush()
        return profile

    def list(self, *, text: str | None = None, limit: int = 100) -> list[Customer]:
        q = self._session.query(Customer)
        if text:
            pattern = f"%{text.strip()}%"
            q = q.filter(or_(Customer.name.ilike(pattern), Customer.email.ilike(pattern)))
        return q.order_by(Customer.lifetime_spend_cents.desc(), Customer.id).limit(limit).all()
