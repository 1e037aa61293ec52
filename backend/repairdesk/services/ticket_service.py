# Overview: Service-layer operations for repair tickets; intake, edits, status changes and deletion.

# backend/repairdesk/services/ticket_service.py
"""
Repair Ticket Lifecycle

MULTI-TENANT: Every function takes store_id and loads tickets with
filter_by(id=..., store_id=...). A ticket from another store is reported as
not found.

STATUS MACHINE:
- Intake always creates 'pending', whatever status the caller sent.
- Any status may move to any other status; transitions are caller-driven.
- Entering 'completed' (from any other status) creates the ticket's
  warranty, once. Existence is checked by ticket lookup right before the
  insert, so completed -> in_progress -> completed does not create a second
  warranty.

ORDERING:
Field edits and the status change of one update_ticket() call are applied
and flushed before the warranty is created, so an actual_completion_date
sent together with status='completed' becomes the warranty start date.

DELETION:
Images (rows and blobs), expenses, the warranty and its claims go with the
ticket. Stock consumed by the ticket's expenses is NOT given back; only
deleting an individual expense restores stock.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Expense, RepairTicket, TicketImage, Warranty, WarrantyClaim
from ..validation import NotFoundError, ValidationError
from .concurrency import run_with_retry
from .document_service import next_document_number
from .storage_service import delete_blob
from .warranty_service import _create_warranty_inner


TICKET_DOCUMENT_TYPE = "ticket"
TICKET_NUMBER_PREFIX = "TK"

TICKET_MUTABLE_FIELDS = {
    "device_type",
    "device_brand",
    "device_model",
    "device_serial_number",
    "issue_description",
    "status",
    "priority",
    "estimated_cost_cents",
    "actual_cost_cents",
    "estimated_completion_date",
    "actual_completion_date",
    "notes",
}

CUSTOMER_FIELDS = {"customer_name", "customer_email", "customer_phone"}


def _ensure_ticket_in_store(store_id: int, ticket_id: int) -> RepairTicket:
    ticket = db.session.query(RepairTicket).filter_by(id=ticket_id, store_id=store_id).first()
    if ticket is None:
        raise NotFoundError("Ticket not found")
    return ticket


def _resolve_customer(store_id: int, name: str | None, email: str | None, phone: str | None) -> Customer:
    """
    Get-or-create a customer by (store_id, lower(email)).

    An existing customer gets its name and phone refreshed from intake data.
    """
    email = (email or "").strip().lower()
    name = (name or "").strip()
    if not email:
        raise ValidationError("customer_email is required")
    if not name:
        raise ValidationError("customer_name is required")

    customer = db.session.query(Customer).filter_by(store_id=store_id, email=email).first()
    if customer is None:
        customer = Customer(store_id=store_id, email=email, name=name, phone=phone)
        db.session.add(customer)
        db.session.flush()
        return customer

    customer.name = name
    if phone is not None:
        customer.phone = phone
    return customer


def _apply_ticket_patch(ticket: RepairTicket, patch: dict) -> None:
    for k, v in patch.items():
        if k not in TICKET_MUTABLE_FIELDS:
            continue
        setattr(ticket, k, v)


def create_ticket(store_id: int, patch: dict) -> RepairTicket:
    """
    Ticket intake.

    `patch` carries ticket columns plus customer_name / customer_email /
    customer_phone. The status is forced to 'pending'.
    """
    def _op():
        customer = _resolve_customer(
            store_id,
            patch.get("customer_name"),
            patch.get("customer_email"),
            patch.get("customer_phone"),
        )

        ticket = RepairTicket(store_id=store_id, customer_id=customer.id)
        _apply_ticket_patch(ticket, patch)
        ticket.status = "pending"
        if not ticket.priority:
            ticket.priority = "medium"
        ticket.ticket_number = next_document_number(
            store_id=store_id,
            document_type=TICKET_DOCUMENT_TYPE,
            prefix=TICKET_NUMBER_PREFIX,
        )

        db.session.add(ticket)
        db.session.commit()
        return ticket

    return run_with_retry(_op)


def update_ticket(
    store_id: int,
    ticket_id: int,
    patch: dict,
    *,
    default_warranty_period_days: int | None = None,
) -> RepairTicket:
    """
    Apply field edits and an optional status change as one update.

    Args:
        patch: validated ticket fields, optionally with customer_* fields
        default_warranty_period_days: period for a warranty created by this
            update; when None the store's configured default is used

    Raises:
        NotFoundError: ticket missing / in another store
    """
    def _op():
        ticket = _ensure_ticket_in_store(store_id, ticket_id)
        previous_status = ticket.status

        if CUSTOMER_FIELDS & patch.keys():
            current = ticket.customer
            customer = _resolve_customer(
                store_id,
                patch.get("customer_name", current.name),
                patch.get("customer_email", current.email),
                patch.get("customer_phone", current.phone),
            )
            ticket.customer = customer

        _apply_ticket_patch(ticket, patch)
        db.session.flush()

        if ticket.status == "completed" and previous_status != "completed":
            existing = db.session.query(Warranty.id).filter_by(ticket_id=ticket.id).first()
            if existing is None:
                warranty = _create_warranty_inner(
                    store_id,
                    ticket.id,
                    default_period_days=default_warranty_period_days,
                )
                current_app.logger.info(
                    "Created warranty %s for ticket %s (%s days, expires %s)",
                    warranty.id,
                    ticket.ticket_number,
                    warranty.warranty_period_days,
                    warranty.expiry_date,
                )

        db.session.commit()
        return ticket

    return run_with_retry(_op)


def delete_ticket(store_id: int, ticket_id: int) -> bool:
    """
    Delete a ticket with its images, expenses, warranty and claims.

    Returns False when the ticket does not exist in this store. Blob delete
    failures are logged and do not stop the row deletion.
    """
    def _op():
        ticket = db.session.query(RepairTicket).filter_by(id=ticket_id, store_id=store_id).first()
        if ticket is None:
            return False

        linked = (
            db.session.query(Expense.id)
            .filter(Expense.ticket_id == ticket.id, Expense.inventory_item_id.isnot(None))
            .count()
        )
        if linked:
            current_app.logger.warning(
                "Deleting ticket %s with %s inventory-linked expenses; consumed stock is not restored",
                ticket.ticket_number,
                linked,
            )

        for image in list(ticket.images):
            delete_blob(image.file_path)

        # Follow-up references from claims on other tickets' warranties
        (
            db.session.query(WarrantyClaim)
            .filter(WarrantyClaim.related_ticket_id == ticket.id)
            .update({WarrantyClaim.related_ticket_id: None}, synchronize_session="fetch")
        )

        db.session.delete(ticket)
        db.session.commit()
        return True

    return run_with_retry(_op)


def add_ticket_image(
    store_id: int,
    ticket_id: int,
    *,
    file_name: str,
    file_path: str,
    file_size: int | None = None,
    mime_type: str | None = None,
) -> TicketImage:
    """Record an already-uploaded image against a ticket."""
    if not file_name or not file_path:
        raise ValidationError("file_name and file_path are required")

    def _op():
        ticket = _ensure_ticket_in_store(store_id, ticket_id)
        image = TicketImage(
            ticket=ticket,
            file_name=file_name,
            file_path=file_path,
            file_size=file_size,
            mime_type=mime_type,
        )
        db.session.add(image)
        db.session.commit()
        return image

    return run_with_retry(_op)


def delete_ticket_image(store_id: int, ticket_id: int, image_id: int) -> bool:
    def _op():
        _ensure_ticket_in_store(store_id, ticket_id)
        image = db.session.query(TicketImage).filter_by(id=image_id, ticket_id=ticket_id).first()
        if image is None:
            return False
        delete_blob(image.file_path)
        db.session.delete(image)
        db.session.commit()
        return True

    return run_with_retry(_op)


def list_ticket_images(store_id: int, ticket_id: int) -> list[TicketImage]:
    _ensure_ticket_in_store(store_id, ticket_id)
    return (
        db.session.query(TicketImage)
        .filter(TicketImage.ticket_id == ticket_id)
        .order_by(TicketImage.id.asc())
        .all()
    )


def get_ticket(store_id: int, ticket_id: int) -> RepairTicket | None:
    return db.session.query(RepairTicket).filter_by(id=ticket_id, store_id=store_id).first()


def get_ticket_by_number(store_id: int, ticket_number: str) -> RepairTicket | None:
    return (
        db.session.query(RepairTicket)
        .filter_by(store_id=store_id, ticket_number=ticket_number)
        .first()
    )


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def list_tickets(
    store_id: int,
    search: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Store-scoped ticket listing, newest first.

    Args:
        search: matches ticket number, device fields, customer name or email
        status / priority: one value or a comma-separated list
        page: 1-indexed. If None, returns all rows.
    """
    query = (
        db.session.query(RepairTicket)
        .join(Customer, Customer.id == RepairTicket.customer_id)
        .filter(RepairTicket.store_id == store_id)
    )

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                RepairTicket.ticket_number.ilike(pattern),
                RepairTicket.device_type.ilike(pattern),
                RepairTicket.device_brand.ilike(pattern),
                RepairTicket.device_model.ilike(pattern),
                RepairTicket.device_serial_number.ilike(pattern),
                Customer.name.ilike(pattern),
                Customer.email.ilike(pattern),
            )
        )

    statuses = _split_csv(status)
    if statuses:
        query = query.filter(RepairTicket.status.in_(statuses))
    priorities = _split_csv(priority)
    if priorities:
        query = query.filter(RepairTicket.priority.in_(priorities))

    query = query.order_by(RepairTicket.created_at.desc(), RepairTicket.id.desc())

    if page is None:
        rows = query.all()
        return {"items": [t.to_dict(include_children=False) for t in rows], "count": len(rows)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [t.to_dict(include_children=False) for t in rows],
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
