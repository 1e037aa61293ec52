# Overview: Service-layer operations for warranties and warranty claims.

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, RepairTicket, Warranty, WarrantyClaim
from ..validation import ConflictError, NotFoundError, ValidationError
from ..time_utils import utctoday
from .concurrency import run_with_retry
from .store_service import get_default_warranty_period_days
"""
Warranty lifecycle.

    active --(expiry_date < today, on read)--> expired
    active --(claim filed)--> claimed
    any    --(void)--> voided

The stored 'active' status goes stale once expiry_date passes. Every read
below runs reconcile_expired() on what it is about to return, so callers
never see an overdue warranty reported as active. The write happens in the
read's own transaction. expire_overdue_warranties() does the same for a whole
store (or all stores) and is exposed as a CLI command for periodic sweeps.

Dates are calendar dates; expiry_date is the last covered day, so a warranty
is still active on its expiry date and expired the day after.
"""


DEFAULT_EXPIRING_WINDOW_DAYS = 30

WARRANTY_MUTABLE_FIELDS = {"warranty_type", "terms", "notes"}
CLAIM_MUTABLE_FIELDS = {"status", "resolution_notes", "resolution_date", "related_ticket_id"}


class DuplicateWarrantyError(ConflictError):
    pass


def _today(today: date | None) -> date:
    return today if today is not None else utctoday()


def reconcile_expired(warranties: Iterable[Warranty], today: date | None = None) -> int:
    """
    Flip active warranties whose expiry_date is before `today` to expired.

    Mutates the passed rows and flushes; the caller commits. Returns the
    number of rows changed.
    """
    today = _today(today)
    changed = 0
    for w in warranties:
        if w.status == "active" and w.expiry_date < today:
            w.status = "expired"
            changed += 1
    if changed:
        db.session.flush()
    return changed


def _reconciled(warranties: list[Warranty], today: date | None) -> list[Warranty]:
    if reconcile_expired(warranties, today):
        db.session.commit()
    return warranties


def expire_overdue_warranties(store_id: int | None = None, today: date | None = None) -> int:
    """Bulk sweep: expire every overdue active warranty. Returns rows updated."""
    today = _today(today)

    def _op():
        q = db.session.query(Warranty).filter(
            Warranty.status == "active",
            Warranty.expiry_date < today,
        )
        if store_id is not None:
            q = q.filter(Warranty.store_id == store_id)
        updated = q.update({Warranty.status: "expired"}, synchronize_session="fetch")
        db.session.commit()
        return updated

    updated = run_with_retry(_op)
    if updated:
        current_app.logger.info(
            "Expired %s overdue warranties (store=%s, as of %s)", updated, store_id or "all", today
        )
    return updated


def _ensure_ticket_in_store(store_id: int, ticket_id: int) -> RepairTicket:
    ticket = db.session.query(RepairTicket).filter_by(id=ticket_id, store_id=store_id).first()
    if ticket is None:
        raise NotFoundError("Ticket not found")
    return ticket


def _ensure_warranty_in_store(store_id: int, warranty_id: int) -> Warranty:
    warranty = db.session.query(Warranty).filter_by(id=warranty_id, store_id=store_id).first()
    if warranty is None:
        raise NotFoundError("Warranty not found")
    return warranty


def _resolve_period(
    store_id: int,
    warranty_period_days: int | None,
    default_period_days: int | None,
) -> int:
    if warranty_period_days is not None:
        period = warranty_period_days
    elif default_period_days is not None:
        period = default_period_days
    else:
        period = get_default_warranty_period_days(store_id)

    if isinstance(period, bool) or not isinstance(period, int) or period <= 0:
        raise ValidationError("warranty_period_days must be a positive integer")
    return period


def _create_warranty_inner(
    store_id: int,
    ticket_id: int,
    *,
    warranty_period_days: int | None = None,
    warranty_type: str | None = None,
    start_date: date | None = None,
    terms: str | None = None,
    notes: str | None = None,
    default_period_days: int | None = None,
) -> Warranty:
    """Non-committing create; the caller owns the transaction."""
    ticket = _ensure_ticket_in_store(store_id, ticket_id)

    existing = db.session.query(Warranty.id).filter_by(ticket_id=ticket.id).first()
    if existing is not None:
        raise DuplicateWarrantyError("Warranty already exists for this ticket")

    period = _resolve_period(store_id, warranty_period_days, default_period_days)
    start = start_date or ticket.actual_completion_date or utctoday()

    warranty = Warranty(
        ticket=ticket,
        store_id=store_id,
        customer_id=ticket.customer_id,
        warranty_period_days=period,
        start_date=start,
        expiry_date=start + timedelta(days=period),
        warranty_type=warranty_type or "both",
        status="active",
        terms=terms,
        notes=notes,
    )
    db.session.add(warranty)
    db.session.flush()
    return warranty


def create_warranty(
    store_id: int,
    ticket_id: int,
    *,
    warranty_period_days: int | None = None,
    warranty_type: str | None = None,
    start_date: date | None = None,
    terms: str | None = None,
    notes: str | None = None,
    default_period_days: int | None = None,
) -> Warranty:
    """
    Create the warranty for a ticket.

    Period: explicit value, else `default_period_days`, else the store's
    configured default. Start: explicit value, else the ticket's actual
    completion date, else today.

    Raises:
        NotFoundError: ticket missing / in another store
        DuplicateWarrantyError: the ticket already has a warranty
    """
    def _op():
        warranty = _create_warranty_inner(
            store_id,
            ticket_id,
            warranty_period_days=warranty_period_days,
            warranty_type=warranty_type,
            start_date=start_date,
            terms=terms,
            notes=notes,
            default_period_days=default_period_days,
        )
        db.session.commit()
        return warranty

    return run_with_retry(_op)


def get_warranty(store_id: int, warranty_id: int, *, today: date | None = None) -> Warranty | None:
    warranty = db.session.query(Warranty).filter_by(id=warranty_id, store_id=store_id).first()
    if warranty is None:
        return None
    _reconciled([warranty], today)
    return warranty


def get_warranty_by_ticket(store_id: int, ticket_id: int, *, today: date | None = None) -> Warranty | None:
    warranty = db.session.query(Warranty).filter_by(ticket_id=ticket_id, store_id=store_id).first()
    if warranty is None:
        return None
    _reconciled([warranty], today)
    return warranty


def list_warranties_for_customer(store_id: int, customer_id: int, *, today: date | None = None) -> list[Warranty]:
    warranties = (
        db.session.query(Warranty)
        .filter(Warranty.store_id == store_id, Warranty.customer_id == customer_id)
        .order_by(Warranty.created_at.desc(), Warranty.id.desc())
        .all()
    )
    return _reconciled(warranties, today)


def list_warranties(
    store_id: int,
    search: str | None = None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
    *,
    today: date | None = None,
) -> dict:
    """
    Store-scoped warranty listing.

    Overdue rows are reconciled before the status filter is applied, so
    filtering by 'active' never returns an overdue warranty.

    Args:
        search: matches ticket number, customer name or customer email
        status: one status or a comma-separated list
        page: 1-indexed. If None, returns all rows.
    """
    expire_overdue_warranties(store_id=store_id, today=_today(today))

    query = db.session.query(Warranty).filter(Warranty.store_id == store_id)

    if search:
        pattern = f"%{search.strip()}%"
        query = (
            query.join(RepairTicket, RepairTicket.id == Warranty.ticket_id)
            .join(Customer, Customer.id == Warranty.customer_id)
            .filter(
                or_(
                    RepairTicket.ticket_number.ilike(pattern),
                    Customer.name.ilike(pattern),
                    Customer.email.ilike(pattern),
                )
            )
        )
    if status:
        statuses = [s.strip() for s in status.split(",") if s.strip()]
        query = query.filter(Warranty.status.in_(statuses))

    query = query.order_by(Warranty.created_at.desc(), Warranty.id.desc())

    if page is None:
        rows = query.all()
        return {"items": [w.to_dict() for w in rows], "count": len(rows)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [w.to_dict() for w in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def list_expiring_warranties(
    store_id: int,
    days: int = DEFAULT_EXPIRING_WINDOW_DAYS,
    *,
    today: date | None = None,
) -> list[Warranty]:
    """Active warranties with expiry_date in [today, today + days], soonest first."""
    today = _today(today)
    if days is None or days < 0:
        raise ValidationError("days must be >= 0")

    expire_overdue_warranties(store_id=store_id, today=today)

    return (
        db.session.query(Warranty)
        .filter(
            Warranty.store_id == store_id,
            Warranty.status == "active",
            Warranty.expiry_date >= today,
            Warranty.expiry_date <= today + timedelta(days=days),
        )
        .order_by(Warranty.expiry_date.asc(), Warranty.id.asc())
        .all()
    )


def list_expired_warranties(store_id: int, *, today: date | None = None) -> list[Warranty]:
    expire_overdue_warranties(store_id=store_id, today=_today(today))
    return (
        db.session.query(Warranty)
        .filter(Warranty.store_id == store_id, Warranty.status == "expired")
        .order_by(Warranty.expiry_date.desc(), Warranty.id.desc())
        .all()
    )


def update_warranty(
    store_id: int,
    warranty_id: int,
    patch: dict,
    *,
    today: date | None = None,
) -> Warranty:
    """
    Edit a warranty. A new warranty_period_days moves expiry_date, keeping
    the original start_date.

    Status is not editable here: it changes only through void_warranty(),
    create_claim() and expiry. The edited row is reconciled before commit,
    so a period that moves expiry_date into the past expires it.
    """
    if "status" in patch:
        raise ValidationError("status cannot be edited directly")

    def _op():
        warranty = _ensure_warranty_in_store(store_id, warranty_id)

        if "warranty_period_days" in patch and patch["warranty_period_days"] is not None:
            period = patch["warranty_period_days"]
            if isinstance(period, bool) or not isinstance(period, int) or period <= 0:
                raise ValidationError("warranty_period_days must be a positive integer")
            warranty.warranty_period_days = period
            warranty.expiry_date = warranty.start_date + timedelta(days=period)

        for k, v in patch.items():
            if k in WARRANTY_MUTABLE_FIELDS:
                setattr(warranty, k, v)

        reconcile_expired([warranty], today)
        db.session.commit()
        return warranty

    return run_with_retry(_op)


def void_warranty(store_id: int, warranty_id: int) -> Warranty:
    def _op():
        warranty = _ensure_warranty_in_store(store_id, warranty_id)
        warranty.status = "voided"
        db.session.commit()
        return warranty

    return run_with_retry(_op)


def create_claim(
    store_id: int,
    warranty_id: int,
    issue_description: str,
    claim_date: date | None = None,
    *,
    today: date | None = None,
) -> WarrantyClaim:
    """
    File a claim against a warranty.

    The warranty moves active -> claimed only if it is still active once
    reconciled against `today`. Claims against expired, voided or already
    claimed warranties are recorded without touching the warranty status.
    """
    if not issue_description or not str(issue_description).strip():
        raise ValidationError("issue_description is required")

    def _op():
        warranty = _ensure_warranty_in_store(store_id, warranty_id)
        reconcile_expired([warranty], today)

        claim = WarrantyClaim(
            warranty=warranty,
            store_id=store_id,
            issue_description=str(issue_description).strip(),
            claim_date=claim_date or _today(today),
            status="pending",
        )
        db.session.add(claim)

        if warranty.status == "active":
            warranty.status = "claimed"

        db.session.commit()
        return claim

    return run_with_retry(_op)


def get_claim(store_id: int, claim_id: int) -> WarrantyClaim | None:
    return db.session.query(WarrantyClaim).filter_by(id=claim_id, store_id=store_id).first()


def list_claims(store_id: int, status: str | None = None) -> list[WarrantyClaim]:
    query = db.session.query(WarrantyClaim).filter(WarrantyClaim.store_id == store_id)
    if status:
        statuses = [s.strip() for s in status.split(",") if s.strip()]
        query = query.filter(WarrantyClaim.status.in_(statuses))
    return query.order_by(WarrantyClaim.claim_date.desc(), WarrantyClaim.id.desc()).all()


def list_claims_for_warranty(store_id: int, warranty_id: int) -> list[WarrantyClaim]:
    _ensure_warranty_in_store(store_id, warranty_id)
    return (
        db.session.query(WarrantyClaim)
        .filter(WarrantyClaim.store_id == store_id, WarrantyClaim.warranty_id == warranty_id)
        .order_by(WarrantyClaim.claim_date.desc(), WarrantyClaim.id.desc())
        .all()
    )


def update_claim(store_id: int, claim_id: int, patch: dict) -> WarrantyClaim:
    """Edit claim status / resolution. A related ticket must be in the same store."""
    def _op():
        claim = db.session.query(WarrantyClaim).filter_by(id=claim_id, store_id=store_id).first()
        if claim is None:
            raise NotFoundError("Claim not found")

        related = patch.get("related_ticket_id")
        if related is not None:
            _ensure_ticket_in_store(store_id, related)

        for k, v in patch.items():
            if k in CLAIM_MUTABLE_FIELDS:
                setattr(claim, k, v)

        db.session.commit()
        return claim

    return run_with_retry(_op)
