# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/repairdesk/services/inventory_service.py

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Expense, InventoryItem
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry
from .store_service import require_store
"""
Inventory Invariants (authoritative)

Quantity model:
- InventoryItem.current_quantity is a stored counter, not ledger-derived.
- It is written in exactly one place: _adjust_quantity_inner(). Item edits
  that carry current_quantity are converted to a delta and routed there.

Business invariants:
- current_quantity may never go negative. An adjustment that would take it
  below zero raises InvalidQuantityError and nothing is written.
- SKU, when present, is unique within a store. The same SKU may exist in
  another store.

Concurrency:
- The item row is read with SELECT ... FOR UPDATE and carries version_id.
  A concurrent writer that loses the race gets StaleDataError and the whole
  unit of work is retried by run_with_retry().

Expense links:
- Deleting an item leaves expenses that referenced it in place with
  inventory_item_id = NULL.
"""


ITEM_MUTABLE_FIELDS = {
    "name",
    "sku",
    "description",
    "category",
    "location",
    "min_quantity",
    "unit_price_cents",
    "cost_price_cents",
}


class InvalidQuantityError(ValueError):
    """Adjustment would take on-hand quantity below zero."""


class DuplicateSkuError(ConflictError):
    pass


def _normalize_sku(sku):
    if sku is None:
        return None
    sku = str(sku).strip()
    return sku or None


def _ensure_sku_available(store_id: int, sku: str | None, *, exclude_id: int | None = None) -> None:
    if sku is None:
        return
    q = db.session.query(InventoryItem.id).filter(
        InventoryItem.store_id == store_id,
        InventoryItem.sku == sku,
    )
    if exclude_id is not None:
        q = q.filter(InventoryItem.id != exclude_id)
    if q.first() is not None:
        raise DuplicateSkuError(f"SKU '{sku}' already exists in this store")


def _ensure_item_in_store(store_id: int, item_id: int, *, lock: bool = False) -> InventoryItem:
    query = db.session.query(InventoryItem).filter_by(id=item_id, store_id=store_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise NotFoundError("Inventory item not found")
    return item


def _apply_item_patch(item: InventoryItem, patch: dict) -> None:
    for k, v in patch.items():
        if k not in ITEM_MUTABLE_FIELDS:
            continue
        setattr(item, k, v)


def create_item(store_id: int, patch: dict) -> InventoryItem:
    """
    Create an inventory item from a validated patch dict.

    Raises:
        NotFoundError: store does not exist
        DuplicateSkuError: SKU already used in this store
        ValidationError: negative initial quantity
    """
    def _op():
        require_store(store_id)

        sku = _normalize_sku(patch.get("sku"))
        _ensure_sku_available(store_id, sku)

        quantity = patch.get("current_quantity")
        if quantity is None:
            quantity = 0
        if quantity < 0:
            raise ValidationError("current_quantity must be >= 0")

        item = InventoryItem(store_id=store_id, current_quantity=quantity)
        _apply_item_patch(item, patch)
        item.sku = sku
        if item.min_quantity is None:
            item.min_quantity = 0

        db.session.add(item)
        db.session.commit()
        return item

    return run_with_retry(_op)


def update_item(store_id: int, item_id: int, patch: dict) -> InventoryItem:
    """
    Apply field edits to an item.

    current_quantity is never assigned directly: the difference from the
    stored value goes through _adjust_quantity_inner so the same
    non-negativity rule applies as for any other adjustment.
    """
    def _op():
        item = _ensure_item_in_store(store_id, item_id, lock=True)

        clean = dict(patch)
        if "sku" in clean:
            clean["sku"] = _normalize_sku(clean["sku"])
            if clean["sku"] != item.sku:
                _ensure_sku_available(store_id, clean["sku"], exclude_id=item.id)

        target = clean.pop("current_quantity", None)
        _apply_item_patch(item, clean)

        if target is not None and target != item.current_quantity:
            _adjust_quantity_inner(store_id, item_id, target - item.current_quantity)

        db.session.commit()
        return item

    return run_with_retry(_op)


def _adjust_quantity_inner(store_id: int, item_id: int, delta: int) -> InventoryItem:
    """
    Non-committing adjustment; the caller owns the transaction.

    Used by expense_service so that the stock movement and the expense row
    it accompanies are written together or not at all.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("quantity delta must be an integer")

    item = _ensure_item_in_store(store_id, item_id, lock=True)

    new_quantity = item.current_quantity + delta
    if new_quantity < 0:
        raise InvalidQuantityError(
            f"Quantity cannot go below zero (current {item.current_quantity}, change {delta})"
        )

    item.current_quantity = new_quantity
    db.session.flush()
    return item


def adjust_quantity(store_id: int, item_id: int, delta: int) -> InventoryItem:
    """Add delta (may be negative) to the item's on-hand quantity and commit."""
    def _op():
        item = _adjust_quantity_inner(store_id, item_id, delta)
        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(store_id: int, item_id: int) -> bool:
    """
    Delete an item. Returns False when it does not exist in this store.

    Outstanding expense references are not checked; those expenses keep
    their rows with the link cleared.
    """
    def _op():
        item = db.session.query(InventoryItem).filter_by(id=item_id, store_id=store_id).first()
        if item is None:
            return False

        (
            db.session.query(Expense)
            .filter(Expense.inventory_item_id == item.id)
            .update({Expense.inventory_item_id: None}, synchronize_session="fetch")
        )
        db.session.delete(item)
        db.session.commit()
        return True

    return run_with_retry(_op)


def get_item(store_id: int, item_id: int) -> InventoryItem | None:
    return db.session.query(InventoryItem).filter_by(id=item_id, store_id=store_id).first()


def list_items(
    store_id: int,
    search: str | None = None,
    category: str | None = None,
    location: str | None = None,
    low_stock: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Store-scoped item listing with optional filters and pagination.

    Args:
        search: case-insensitive match on name, SKU or description
        category / location: exact match
        low_stock: only items with current_quantity <= min_quantity
        page: 1-indexed. If None, returns all items.
        per_page: default 20, max 100

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    query = db.session.query(InventoryItem).filter(InventoryItem.store_id == store_id)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                InventoryItem.name.ilike(pattern),
                InventoryItem.sku.ilike(pattern),
                InventoryItem.description.ilike(pattern),
            )
        )
    if category:
        query = query.filter(InventoryItem.category == category)
    if location:
        query = query.filter(InventoryItem.location == location)
    if low_stock:
        query = query.filter(InventoryItem.current_quantity <= InventoryItem.min_quantity)

    query = query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc())

    if page is None:
        items = query.all()
        return {
            "items": [i.to_dict() for i in items],
            "count": len(items),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    items = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [i.to_dict() for i in items],
        "count": len(items),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def list_low_stock_items(store_id: int) -> list[InventoryItem]:
    return (
        db.session.query(InventoryItem)
        .filter(
            InventoryItem.store_id == store_id,
            InventoryItem.current_quantity <= InventoryItem.min_quantity,
        )
        .order_by(InventoryItem.current_quantity.asc(), InventoryItem.name.asc())
        .all()
    )


def _distinct_values(store_id: int, column) -> list[str]:
    rows = (
        db.session.query(column)
        .filter(InventoryItem.store_id == store_id, column.isnot(None), column != "")
        .distinct()
        .order_by(column.asc())
        .all()
    )
    return [r[0] for r in rows]


def list_categories(store_id: int) -> list[str]:
    return _distinct_values(store_id, InventoryItem.category)


def list_locations(store_id: int) -> list[str]:
    return _distinct_values(store_id, InventoryItem.location)
