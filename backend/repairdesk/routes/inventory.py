# Overview: Flask API routes for inventory items; parses input and returns JSON responses.

# backend/repairdesk/routes/inventory.py
"""
Inventory item routes.

MULTI-TENANT: Every route is scoped to g.store_id (set by @require_store).
Items from another store are reported as 404.

Quantity semantics:
- POST /<id>/adjust takes a signed delta: {"quantity": -2}
- PUT with current_quantity is turned into an adjustment by the service, so
  it is rejected the same way if it would go below zero.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_store
from ..models import InventoryItem
from ..services import inventory_service
from ..services.inventory_service import DuplicateSkuError, InvalidQuantityError
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_inventory_item,
    validate_payload,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

INVENTORY_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "sku",
        "description",
        "category",
        "location",
        "current_quantity",
        "min_quantity",
        "unit_price_cents",
        "cost_price_cents",
    },
    required_on_create={"name"},
)


@inventory_bp.get("")
@require_store
def list_items_route():
    """
    List inventory items.

    Query params:
    - search, category, location: filters
    - low_stock: "true" to only return items at or below min_quantity
    - page / per_page: pagination (omit page to get everything)
    """
    low_stock = request.args.get("low_stock", "").lower() in ("1", "true", "yes")
    return inventory_service.list_items(
        g.store_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
        location=request.args.get("location"),
        low_stock=low_stock,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@inventory_bp.get("/low-stock")
@require_store
def low_stock_route():
    items = inventory_service.list_low_stock_items(g.store_id)
    return {"items": [i.to_dict() for i in items], "count": len(items)}


@inventory_bp.get("/categories")
@require_store
def categories_route():
    return {"categories": inventory_service.list_categories(g.store_id)}


@inventory_bp.get("/locations")
@require_store
def locations_route():
    return {"locations": inventory_service.list_locations(g.store_id)}


@inventory_bp.post("")
@require_store
def create_item_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=InventoryItem,
            payload=payload,
            policy=INVENTORY_ITEM_POLICY,
            partial=False,
        )
        enforce_rules_inventory_item(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        item = inventory_service.create_item(g.store_id, patch)
    except DuplicateSkuError as e:
        return {"error": str(e)}, 409
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValueError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return {"error": "Failed to create inventory item"}, 500

    return {"item": item.to_dict()}, 201


@inventory_bp.get("/<int:item_id>")
@require_store
def get_item_route(item_id: int):
    item = inventory_service.get_item(g.store_id, item_id)
    if item is None:
        return {"error": "Inventory item not found"}, 404
    return {"item": item.to_dict()}


@inventory_bp.put("/<int:item_id>")
@require_store
def update_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=InventoryItem,
            payload=payload,
            policy=INVENTORY_ITEM_POLICY,
            partial=True,
        )
        enforce_rules_inventory_item(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        item = inventory_service.update_item(g.store_id, item_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except DuplicateSkuError as e:
        return {"error": str(e)}, 409
    except (InvalidQuantityError, ValidationError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update inventory item")
        return {"error": "Failed to update inventory item"}, 500

    return {"item": item.to_dict()}


@inventory_bp.delete("/<int:item_id>")
@require_store
def delete_item_route(item_id: int):
    try:
        deleted = inventory_service.delete_item(g.store_id, item_id)
    except Exception:
        current_app.logger.exception("Failed to delete inventory item")
        return {"error": "Failed to delete inventory item"}, 500

    if not deleted:
        return {"error": "Inventory item not found"}, 404
    return {"deleted": True, "id": item_id}


@inventory_bp.post("/<int:item_id>/adjust")
@require_store
def adjust_item_route(item_id: int):
    """Apply a signed quantity delta: {"quantity": <int>}."""
    payload = request.get_json(silent=True) or {}
    delta = payload.get("quantity")

    if isinstance(delta, bool) or not isinstance(delta, int):
        return {"error": "quantity must be an integer"}, 400

    try:
        item = inventory_service.adjust_quantity(g.store_id, item_id, delta)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except (InvalidQuantityError, ValidationError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return {"error": "Failed to adjust inventory"}, 500

    return {"item": item.to_dict()}
