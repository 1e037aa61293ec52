from __future__ import annotations

from ..extensions import db
from repairdesk.time_utils import to_utc_z, to_iso_date


TICKET_STATUSES = ("pending", "in_progress", "waiting_parts", "completed", "cancelled")
TICKET_PRIORITIES = ("low", "medium", "high", "urgent")


class RepairTicket(db.Model):
    """
    Repair ticket: one device brought in by one customer.

    MULTI-TENANT: Scoped to stores via store_id; ticket_number is unique
    within a store.

    LIFECYCLE:
    - Created as 'pending' whatever the caller asked for.
    - Any status may move to any other status.
    - Entering 'completed' creates the ticket's warranty once.

    Owns expenses and images (deleted with the ticket). The warranty is
    1:1 and is also removed with the ticket.
    """
    __tablename__ = "repair_tickets"
    __table_args__ = (
        db.UniqueConstraint("store_id", "ticket_number", name="uq_repair_tickets_store_number"),
        db.Index("ix_repair_tickets_store_status", "store_id", "status"),
        db.Index("ix_repair_tickets_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    ticket_number = db.Column(db.String(32), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    device_type = db.Column(db.String(128), nullable=False)
    device_brand = db.Column(db.String(128), nullable=True)
    device_model = db.Column(db.String(128), nullable=True)
    device_serial_number = db.Column(db.String(128), nullable=True)
    issue_description = db.Column(db.Text, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    priority = db.Column(db.String(16), nullable=False, default="medium")

    estimated_cost_cents = db.Column(db.Integer, nullable=True)
    actual_cost_cents = db.Column(db.Integer, nullable=True)
    estimated_completion_date = db.Column(db.Date, nullable=True)
    actual_completion_date = db.Column(db.Date, nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("tickets", lazy=True))
    expenses = db.relationship(
        "Expense",
        backref="ticket",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Expense.id",
    )
    images = db.relationship(
        "TicketImage",
        backref="ticket",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="TicketImage.id",
    )

    def __repr__(self) -> str:
        return f"<RepairTicket id={self.id} number={self.ticket_number!r} status={self.status!r}>"

    def to_dict(self, *, include_children: bool = True) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "ticket_number": self.ticket_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "customer_email": self.customer.email if self.customer else None,
            "customer_phone": self.customer.phone if self.customer else None,
            "device_type": self.device_type,
            "device_brand": self.device_brand,
            "device_model": self.device_model,
            "device_serial_number": self.device_serial_number,
            "issue_description": self.issue_description,
            "status": self.status,
            "priority": self.priority,
            "estimated_cost_cents": self.estimated_cost_cents,
            "actual_cost_cents": self.actual_cost_cents,
            "estimated_completion_date": to_iso_date(self.estimated_completion_date),
            "actual_completion_date": to_iso_date(self.actual_completion_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_children:
            data["expenses"] = [e.to_dict() for e in self.expenses]
            data["images"] = [i.to_dict() for i in self.images]
        return data


class TicketImage(db.Model):
    """Image record for a ticket; the bytes live in blob storage at file_path."""
    __tablename__ = "ticket_images"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(
        db.Integer,
        db.ForeignKey("repair_tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(1024), nullable=False)
    file_size = db.Column(db.Integer, nullable=True)
    mime_type = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """
    Billable line (part or labor) on a ticket.

    INVENTORY LINK:
    When inventory_item_id is set, quantity is stock removed from that item
    for as long as the line exists. Creating/growing the line decrements the
    item; shrinking/deleting it gives the stock back. See expense_service.
    """
    __tablename__ = "expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(
        db.Integer,
        db.ForeignKey("repair_tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    inventory_item_id = db.Column(
        db.Integer,
        db.ForeignKey("inventory_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    # Per unit
    price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    inventory_item = db.relationship("InventoryItem")

    @property
    def total_cents(self) -> int:
        return self.quantity * self.price_cents

    def __repr__(self) -> str:
        return f"<Expense id={self.id} ticket_id={self.ticket_id} qty={self.quantity} item={self.inventory_item_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "inventory_item_id": self.inventory_item_id,
            "name": self.name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
