# Overview: Service-layer operations for ticket expenses and the stock they consume.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Expense, InventoryItem, RepairTicket
from ..validation import NotFoundError, ValidationError, MAX_PRICE_CENTS
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import _adjust_quantity_inner


class InsufficientInventoryError(ValueError):
    """Linked item does not hold enough stock for the requested quantity."""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Insufficient inventory. Available: {available}, Required: {required}")


def _ensure_ticket_in_store(store_id: int, ticket_id: int) -> RepairTicket:
    ticket = db.session.query(RepairTicket).filter_by(id=ticket_id, store_id=store_id).first()
    if ticket is None:
        raise NotFoundError("Ticket not found")
    return ticket


def _ensure_expense_on_ticket(ticket_id: int, expense_id: int, *, lock: bool = False) -> Expense:
    query = db.session.query(Expense).filter_by(id=expense_id, ticket_id=ticket_id)
    if lock:
        query = lock_for_update(query)
    expense = query.first()
    if expense is None:
        raise NotFoundError("Expense not found")
    return expense


def _locked_item(store_id: int, item_id: int) -> InventoryItem:
    item = lock_for_update(
        db.session.query(InventoryItem).filter_by(id=item_id, store_id=store_id)
    ).first()
    if item is None:
        raise NotFoundError("Inventory item not found")
    return item


def _check_quantity(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")


def _check_price(price_cents) -> None:
    if isinstance(price_cents, bool) or not isinstance(price_cents, int):
        raise ValidationError("price_cents must be an integer")
    if price_cents < 0:
        raise ValidationError("price_cents must be >= 0")
    if price_cents > MAX_PRICE_CENTS:
        raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")


def _consume(store_id: int, item_id: int, quantity: int) -> None:
    """Verify and take `quantity` units from the item inside the open transaction."""
    item = _locked_item(store_id, item_id)
    if item.current_quantity < quantity:
        raise InsufficientInventoryError(available=item.current_quantity, required=quantity)
    _adjust_quantity_inner(store_id, item_id, -quantity)


def create_expense(
    store_id: int,
    ticket_id: int,
    *,
    name: str,
    quantity: int,
    price_cents: int,
    inventory_item_id: int | None = None,
) -> Expense:
    """
    Add an expense line to a ticket.

    When inventory_item_id is given the stock decrement and the insert are
    one unit of work: if the row insert fails the stock is not taken, and if
    the stock check fails no row is inserted.

    Raises:
        NotFoundError: ticket or item missing / in another store
        InsufficientInventoryError: item holds fewer than `quantity` units
        ValidationError: bad name, quantity or price
    """
    if not name or not str(name).strip():
        raise ValidationError("name is required")
    _check_quantity(quantity)
    _check_price(price_cents)

    def _op():
        ticket = _ensure_ticket_in_store(store_id, ticket_id)

        if inventory_item_id is not None:
            _consume(store_id, inventory_item_id, quantity)

        expense = Expense(
            ticket=ticket,
            inventory_item_id=inventory_item_id,
            name=str(name).strip(),
            quantity=quantity,
            price_cents=price_cents,
        )
        db.session.add(expense)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def update_expense(store_id: int, ticket_id: int, expense_id: int, patch: dict) -> Expense:
    """
    Edit name / quantity / price of an expense line.

    For an inventory-linked line a quantity change moves only the
    difference: growing the line re-verifies stock for exactly the extra
    units, shrinking it gives units back. The link itself is not editable.
    A failed check leaves both the line and the item untouched.
    """
    if "quantity" in patch:
        _check_quantity(patch["quantity"])
    if "price_cents" in patch:
        _check_price(patch["price_cents"])
    if "name" in patch and (patch["name"] is None or not str(patch["name"]).strip()):
        raise ValidationError("name cannot be blank")

    def _op():
        _ensure_ticket_in_store(store_id, ticket_id)
        expense = _ensure_expense_on_ticket(ticket_id, expense_id, lock=True)

        new_quantity = patch.get("quantity", expense.quantity)
        delta = new_quantity - expense.quantity

        if delta and expense.inventory_item_id is not None:
            if delta > 0:
                _consume(store_id, expense.inventory_item_id, delta)
            else:
                _adjust_quantity_inner(store_id, expense.inventory_item_id, -delta)

        if "name" in patch:
            expense.name = str(patch["name"]).strip()
        if "price_cents" in patch:
            expense.price_cents = patch["price_cents"]
        expense.quantity = new_quantity

        db.session.commit()
        return expense

    return run_with_retry(_op)


def delete_expense(store_id: int, ticket_id: int, expense_id: int) -> bool:
    """
    Remove an expense line, returning its units to the linked item.

    The restore is skipped only when the item itself is gone (the link was
    already cleared when the item was deleted).
    """
    def _op():
        _ensure_ticket_in_store(store_id, ticket_id)
        expense = _ensure_expense_on_ticket(ticket_id, expense_id, lock=True)

        if expense.inventory_item_id is not None and expense.quantity:
            exists = (
                db.session.query(InventoryItem.id)
                .filter_by(id=expense.inventory_item_id, store_id=store_id)
                .first()
            )
            if exists is not None:
                _adjust_quantity_inner(store_id, expense.inventory_item_id, expense.quantity)

        db.session.delete(expense)
        db.session.commit()
        return True

    return run_with_retry(_op)


def get_expense(store_id: int, ticket_id: int, expense_id: int) -> Expense | None:
    return (
        db.session.query(Expense)
        .join(RepairTicket, RepairTicket.id == Expense.ticket_id)
        .filter(
            Expense.id == expense_id,
            Expense.ticket_id == ticket_id,
            RepairTicket.store_id == store_id,
        )
        .first()
    )


def list_expenses(store_id: int, ticket_id: int) -> list[Expense]:
    _ensure_ticket_in_store(store_id, ticket_id)
    return (
        db.session.query(Expense)
        .filter(Expense.ticket_id == ticket_id)
        .order_by(Expense.id.asc())
        .all()
    )


def summarize_expenses(store_id: int, ticket_id: int) -> dict:
    _ensure_ticket_in_store(store_id, ticket_id)
    count, total = (
        db.session.query(
            func.count(Expense.id),
            func.coalesce(func.sum(Expense.quantity * Expense.price_cents), 0),
        )
        .filter(Expense.ticket_id == ticket_id)
        .one()
    )
    return {"ticket_id": ticket_id, "line_count": int(count), "total_cents": int(total)}
