# Overview: Flask API routes for warranties and warranty claims.

# backend/repairdesk/routes/warranties.py
"""
Warranty and claim routes.

MULTI-TENANT: Every route is scoped to g.store_id (set by @require_store).

Every read goes through warranty_service, which expires overdue warranties
before returning them.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_store
from ..models import Warranty, WarrantyClaim
from ..services import warranty_service
from ..services.warranty_service import DuplicateWarrantyError
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_claim,
    enforce_rules_warranty,
    validate_payload,
)


warranties_bp = Blueprint("warranties", __name__, url_prefix="/api/warranties")

WARRANTY_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"ticket_id", "warranty_period_days", "warranty_type", "start_date", "terms", "notes"},
    required_on_create={"ticket_id"},
)

WARRANTY_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"warranty_period_days", "warranty_type", "terms", "notes"},
)

CLAIM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"warranty_id", "issue_description", "claim_date"},
    required_on_create={"warranty_id", "issue_description"},
)

CLAIM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"status", "resolution_notes", "resolution_date", "related_ticket_id"},
)


@warranties_bp.get("")
@require_store
def list_warranties_route():
    """
    List warranties.

    Query params:
    - search: ticket number, customer name or email
    - status: single value or comma-separated list
    - page / per_page: pagination (omit page to get everything)
    """
    return warranty_service.list_warranties(
        g.store_id,
        search=request.args.get("search"),
        status=request.args.get("status"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@warranties_bp.post("")
@require_store
def create_warranty_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Warranty, payload=payload, policy=WARRANTY_CREATE_POLICY, partial=False)
        enforce_rules_warranty(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    ticket_id = patch.pop("ticket_id")
    try:
        warranty = warranty_service.create_warranty(g.store_id, ticket_id, **patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except DuplicateWarrantyError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create warranty")
        return {"error": "Failed to create warranty"}, 500

    return {"warranty": warranty.to_dict()}, 201


@warranties_bp.get("/expiring")
@require_store
def expiring_route():
    """Active warranties expiring within ?days=N (default 30), soonest first."""
    days = request.args.get("days", default=warranty_service.DEFAULT_EXPIRING_WINDOW_DAYS, type=int)
    try:
        rows = warranty_service.list_expiring_warranties(g.store_id, days)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [w.to_dict(include_claims=False) for w in rows], "count": len(rows), "days": days}


@warranties_bp.get("/expired")
@require_store
def expired_route():
    rows = warranty_service.list_expired_warranties(g.store_id)
    return {"items": [w.to_dict(include_claims=False) for w in rows], "count": len(rows)}


@warranties_bp.get("/ticket/<int:ticket_id>")
@require_store
def warranty_by_ticket_route(ticket_id: int):
    warranty = warranty_service.get_warranty_by_ticket(g.store_id, ticket_id)
    if warranty is None:
        return {"error": "Warranty not found"}, 404
    return {"warranty": warranty.to_dict()}


@warranties_bp.get("/customer/<int:customer_id>")
@require_store
def warranties_by_customer_route(customer_id: int):
    rows = warranty_service.list_warranties_for_customer(g.store_id, customer_id)
    return {"items": [w.to_dict() for w in rows], "count": len(rows)}


@warranties_bp.get("/<int:warranty_id>")
@require_store
def get_warranty_route(warranty_id: int):
    warranty = warranty_service.get_warranty(g.store_id, warranty_id)
    if warranty is None:
        return {"error": "Warranty not found"}, 404
    return {"warranty": warranty.to_dict()}


@warranties_bp.patch("/<int:warranty_id>")
@require_store
def update_warranty_route(warranty_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Warranty, payload=payload, policy=WARRANTY_UPDATE_POLICY, partial=True)
        enforce_rules_warranty(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        warranty = warranty_service.update_warranty(g.store_id, warranty_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update warranty")
        return {"error": "Failed to update warranty"}, 500

    return {"warranty": warranty.to_dict()}


@warranties_bp.delete("/<int:warranty_id>")
@require_store
def void_warranty_route(warranty_id: int):
    """Voids the warranty; the record and its claims are kept."""
    try:
        warranty = warranty_service.void_warranty(g.store_id, warranty_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"warranty": warranty.to_dict()}


# Claims


@warranties_bp.get("/claims")
@require_store
def list_claims_route():
    warranty_id = request.args.get("warranty_id", type=int)
    if warranty_id is not None:
        try:
            rows = warranty_service.list_claims_for_warranty(g.store_id, warranty_id)
        except NotFoundError as e:
            return {"error": str(e)}, 404
    else:
        rows = warranty_service.list_claims(g.store_id, status=request.args.get("status"))
    return {"items": [c.to_dict() for c in rows], "count": len(rows)}


@warranties_bp.post("/claims")
@require_store
def create_claim_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=WarrantyClaim, payload=payload, policy=CLAIM_CREATE_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        claim = warranty_service.create_claim(
            g.store_id,
            patch["warranty_id"],
            patch["issue_description"],
            claim_date=patch.get("claim_date"),
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create warranty claim")
        return {"error": "Failed to create warranty claim"}, 500

    return {"claim": claim.to_dict(), "warranty_status": claim.warranty.status}, 201


@warranties_bp.get("/claims/<int:claim_id>")
@require_store
def get_claim_route(claim_id: int):
    claim = warranty_service.get_claim(g.store_id, claim_id)
    if claim is None:
        return {"error": "Claim not found"}, 404
    return {"claim": claim.to_dict()}


@warranties_bp.patch("/claims/<int:claim_id>")
@require_store
def update_claim_route(claim_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=WarrantyClaim, payload=payload, policy=CLAIM_UPDATE_POLICY, partial=True)
        enforce_rules_claim(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        claim = warranty_service.update_claim(g.store_id, claim_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update warranty claim")
        return {"error": "Failed to update warranty claim"}, 500

    return {"claim": claim.to_dict()}
