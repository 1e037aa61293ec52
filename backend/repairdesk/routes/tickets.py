# Overview: Flask API routes for repair tickets, their expenses and images.

# backend/repairdesk/routes/tickets.py
"""
Repair ticket routes.

MULTI-TENANT: Every route is scoped to g.store_id (set by @require_store).

Customer fields (customer_name, customer_email, customer_phone) travel with
the ticket payload but are not ticket columns; they are split off, checked
here and handed to the service, which resolves the customer record.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_store
from ..models import Customer, Expense, RepairTicket, TicketImage
from ..services import expense_service, ticket_service, warranty_service
from ..services.expense_service import InsufficientInventoryError
from ..services.inventory_service import InvalidQuantityError
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_expense,
    enforce_rules_ticket,
    validate_payload,
)


tickets_bp = Blueprint("tickets", __name__, url_prefix="/api/tickets")

TICKET_POLICY = ModelValidationPolicy(
    writable_fields={
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
    },
    required_on_create={"device_type", "issue_description"},
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone"},
    required_on_create={"name", "email"},
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "quantity", "price_cents", "inventory_item_id"},
    required_on_create={"name", "quantity", "price_cents"},
)

EXPENSE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "quantity", "price_cents"},
)

IMAGE_POLICY = ModelValidationPolicy(
    writable_fields={"file_name", "file_path", "file_size", "mime_type"},
    required_on_create={"file_name", "file_path"},
)


def _split_ticket_payload(payload: dict, *, partial: bool) -> dict:
    """Validate ticket + customer fields; returns one patch with customer_* keys."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    ticket_part = {k: v for k, v in payload.items() if not k.startswith("customer_")}
    customer_part = {k[len("customer_"):]: v for k, v in payload.items() if k.startswith("customer_")}

    if not partial:
        missing = sorted(f"customer_{f}" for f in CUSTOMER_POLICY.required_on_create if f not in customer_part)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    patch = validate_payload(model=RepairTicket, payload=ticket_part, policy=TICKET_POLICY, partial=partial)

    try:
        customer = validate_payload(model=Customer, payload=customer_part, policy=CUSTOMER_POLICY, partial=True)
    except ValidationError as e:
        raise ValidationError(f"Invalid customer data: {e}") from e

    for k, v in customer.items():
        patch[f"customer_{k}"] = v

    enforce_rules_ticket(patch)
    return patch


def _ticket_detail(ticket: RepairTicket) -> dict:
    data = ticket.to_dict()
    data["expense_summary"] = expense_service.summarize_expenses(g.store_id, ticket.id)
    warranty = warranty_service.get_warranty_by_ticket(g.store_id, ticket.id)
    data["warranty"] = warranty.to_dict(include_claims=False) if warranty else None
    return data


@tickets_bp.get("")
@require_store
def list_tickets_route():
    """
    List tickets, newest first.

    Query params:
    - search: ticket number, device or customer text
    - status / priority: single value or comma-separated list
    - page / per_page: pagination (omit page to get everything)
    """
    return ticket_service.list_tickets(
        g.store_id,
        search=request.args.get("search"),
        status=request.args.get("status"),
        priority=request.args.get("priority"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@tickets_bp.post("")
@require_store
def create_ticket_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = _split_ticket_payload(payload, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        ticket = ticket_service.create_ticket(g.store_id, patch)
    except ValueError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create ticket")
        return {"error": "Failed to create ticket"}, 500

    return {"ticket": _ticket_detail(ticket)}, 201


@tickets_bp.get("/<int:ticket_id>")
@require_store
def get_ticket_route(ticket_id: int):
    ticket = ticket_service.get_ticket(g.store_id, ticket_id)
    if ticket is None:
        return {"error": "Ticket not found"}, 404
    return {"ticket": _ticket_detail(ticket)}


@tickets_bp.patch("/<int:ticket_id>")
@require_store
def update_ticket_route(ticket_id: int):
    """
    Update ticket fields and/or status in one call.

    Moving to 'completed' creates the warranty (once per ticket).
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = _split_ticket_payload(payload, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        ticket = ticket_service.update_ticket(g.store_id, ticket_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update ticket")
        return {"error": "Failed to update ticket"}, 500

    return {"ticket": _ticket_detail(ticket)}


@tickets_bp.delete("/<int:ticket_id>")
@require_store
def delete_ticket_route(ticket_id: int):
    try:
        deleted = ticket_service.delete_ticket(g.store_id, ticket_id)
    except Exception:
        current_app.logger.exception("Failed to delete ticket")
        return {"error": "Failed to delete ticket"}, 500

    if not deleted:
        return {"error": "Ticket not found"}, 404
    return {"deleted": True, "id": ticket_id}


# Expenses


@tickets_bp.get("/<int:ticket_id>/expenses")
@require_store
def list_expenses_route(ticket_id: int):
    try:
        expenses = expense_service.list_expenses(g.store_id, ticket_id)
        summary = expense_service.summarize_expenses(g.store_id, ticket_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [e.to_dict() for e in expenses], "count": len(expenses), "summary": summary}


@tickets_bp.post("/<int:ticket_id>/expenses")
@require_store
def create_expense_route(ticket_id: int):
    """
    Add an expense line. With inventory_item_id the stock is taken in the
    same transaction; 400 with available/required if there is not enough.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
        enforce_rules_expense(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        expense = expense_service.create_expense(
            g.store_id,
            ticket_id,
            name=patch["name"],
            quantity=patch["quantity"],
            price_cents=patch["price_cents"],
            inventory_item_id=patch.get("inventory_item_id"),
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientInventoryError as e:
        return {"error": str(e), "available": e.available, "required": e.required}, 400
    except (InvalidQuantityError, ValidationError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return {"error": "Failed to create expense"}, 500

    return {"expense": expense.to_dict()}, 201


@tickets_bp.patch("/<int:ticket_id>/expenses/<int:expense_id>")
@require_store
def update_expense_route(ticket_id: int, expense_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_UPDATE_POLICY, partial=True)
        enforce_rules_expense(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        expense = expense_service.update_expense(g.store_id, ticket_id, expense_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientInventoryError as e:
        return {"error": str(e), "available": e.available, "required": e.required}, 400
    except (InvalidQuantityError, ValidationError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update expense")
        return {"error": "Failed to update expense"}, 500

    return {"expense": expense.to_dict()}


@tickets_bp.delete("/<int:ticket_id>/expenses/<int:expense_id>")
@require_store
def delete_expense_route(ticket_id: int, expense_id: int):
    try:
        expense_service.delete_expense(g.store_id, ticket_id, expense_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return {"error": "Failed to delete expense"}, 500

    return {"deleted": True, "id": expense_id}


# Images


@tickets_bp.get("/<int:ticket_id>/images")
@require_store
def list_images_route(ticket_id: int):
    try:
        images = ticket_service.list_ticket_images(g.store_id, ticket_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [i.to_dict() for i in images], "count": len(images)}


@tickets_bp.post("/<int:ticket_id>/images")
@require_store
def add_image_route(ticket_id: int):
    """Record an image that the upload collaborator already stored."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=TicketImage, payload=payload, policy=IMAGE_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        image = ticket_service.add_ticket_image(g.store_id, ticket_id, **patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"image": image.to_dict()}, 201


@tickets_bp.delete("/<int:ticket_id>/images/<int:image_id>")
@require_store
def delete_image_route(ticket_id: int, image_id: int):
    try:
        deleted = ticket_service.delete_ticket_image(g.store_id, ticket_id, image_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    if not deleted:
        return {"error": "Image not found"}, 404
    return {"deleted": True, "id": image_id}
