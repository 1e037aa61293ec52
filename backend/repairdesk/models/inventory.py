from __future__ import annotations

from ..extensions import db
from repairdesk.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Stock-keeping unit with a quantity on hand.

    MULTI-TENANT: Scoped to stores via store_id.

    SKU: optional, but when present it is unique within the store:
    UniqueConstraint("store_id", "sku"). NULL SKUs never collide.

    QUANTITY INVARIANT:
    current_quantity >= 0 at all times. The column is only written by
    inventory_service.adjust_quantity (and its non-committing inner variant);
    direct edits are converted to adjustments.

    version_id guards against lost updates when two expenses consume the same
    item concurrently (the loser gets StaleDataError and is retried).
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sku", name="uq_inventory_items_store_sku"),
        db.Index("ix_inventory_items_store_name", "store_id", "name"),
        db.CheckConstraint("current_quantity >= 0", name="ck_inventory_items_quantity_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=True, index=True)
    location = db.Column(db.String(128), nullable=True, index=True)

    current_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_quantity = db.Column(db.Integer, nullable=False, default=0)

    # Authoritative storage in cents
    unit_price_cents = db.Column(db.Integer, nullable=True)
    cost_price_cents = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("inventory_items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.current_quantity <= self.min_quantity

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} qty={self.current_quantity} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "category": self.category,
            "location": self.location,
            "current_quantity": self.current_quantity,
            "min_quantity": self.min_quantity,
            "unit_price_cents": self.unit_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
