# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request

from .services import store_service
from .validation import NotFoundError


def require_store(f):
    """
    Resolve the caller's store and establish tenant context.

    MULTI-TENANT: Sets g.store_id from the store header (X-Store-Id by
    default; see Config.STORE_HEADER). Authentication happens in front of
    this service, which forwards the store the session belongs to.

    Returns 401 if:
    - The header is missing
    - The header is not an integer id
    - No such store exists
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = current_app.config.get("STORE_HEADER", "X-Store-Id")
        raw = request.headers.get(header)

        if not raw:
            return jsonify({"error": "Store context required"}), 401

        try:
            store_id = int(raw.strip())
        except ValueError:
            return jsonify({"error": "Invalid store context"}), 401

        try:
            store_service.require_store(store_id)
        except NotFoundError:
            return jsonify({"error": "Invalid store context"}), 401

        g.store_id = store_id
        return f(*args, **kwargs)

    return decorated_function
