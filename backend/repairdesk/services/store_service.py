from __future__ import annotations

from flask import current_app

from repairdesk.extensions import db
from repairdesk.models import Store, StoreConfig
from repairdesk.services.concurrency import lock_for_update, run_with_retry
from repairdesk.validation import NotFoundError, ValidationError


WARRANTY_PERIOD_KEY = "warranty.default_period_days"
FALLBACK_WARRANTY_PERIOD_DAYS = 30


class StoreError(Exception):
    """Raised when store operations fail."""
    pass


def create_store(name: str, code: str | None = None) -> Store:
    def _op():
        if not name:
            raise StoreError("Store name is required")

        if db.session.query(Store).filter_by(name=name).first():
            raise StoreError("Store name already exists")

        store = Store(name=name, code=code)
        db.session.add(store)
        db.session.commit()
        return store

    return run_with_retry(_op)


def get_store(store_id: int) -> Store | None:
    return db.session.get(Store, store_id)


def require_store(store_id: int) -> Store:
    """Load a store or raise NotFoundError. Call before trusting a store_id."""
    store = get_store(store_id) if store_id is not None else None
    if store is None:
        raise NotFoundError("Store not found")
    return store


def list_stores() -> list[Store]:
    return db.session.query(Store).order_by(Store.name.asc()).all()


def set_store_config(store_id: int, key: str, value: str | None) -> StoreConfig:
    def _op():
        if not key:
            raise StoreError("Config key is required")
        store = require_store(store_id)

        config = lock_for_update(
            db.session.query(StoreConfig).filter_by(store_id=store_id, key=key)
        ).first()
        if config is None:
            config = StoreConfig(store=store, key=key, value=value)
            db.session.add(config)
        else:
            config.value = value

        db.session.commit()
        return config

    return run_with_retry(_op)


def get_store_config(store_id: int, key: str) -> str | None:
    config = db.session.query(StoreConfig).filter_by(store_id=store_id, key=key).first()
    return config.value if config else None


def set_default_warranty_period_days(store_id: int, days: int) -> StoreConfig:
    if days is None or days <= 0:
        raise ValidationError("warranty period must be a positive number of days")
    return set_store_config(store_id, WARRANTY_PERIOD_KEY, str(days))


def get_default_warranty_period_days(store_id: int) -> int:
    """
    Resolve the store's default warranty period.

    Order: store config row -> app config DEFAULT_WARRANTY_PERIOD_DAYS -> 30.
    A malformed config row is ignored (logged) rather than blocking ticket
    completion.
    """
    fallback = current_app.config.get("DEFAULT_WARRANTY_PERIOD_DAYS", FALLBACK_WARRANTY_PERIOD_DAYS)

    raw = get_store_config(store_id, WARRANTY_PERIOD_KEY)
    if raw is None or not raw.strip():
        return fallback

    try:
        days = int(raw.strip())
    except ValueError:
        current_app.logger.warning(
            "Ignoring invalid %s=%r for store %s", WARRANTY_PERIOD_KEY, raw, store_id
        )
        return fallback

    if days <= 0:
        current_app.logger.warning(
            "Ignoring non-positive %s=%r for store %s", WARRANTY_PERIOD_KEY, raw, store_id
        )
        return fallback
    return days
