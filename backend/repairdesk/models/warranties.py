from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


WARRANTY_TYPES = ("parts", "labor", "both")
WARRANTY_STATUSES = ("active", "expired", "voided", "claimed")
CLAIM_STATUSES = ("pending", "approved", "rejected", "completed")


class Warranty(db.Model):
    """
    Coverage derived from a completed ticket.

    expiry_date = start_date + warranty_period_days.

    STATUS: the stored 'active' value is not trusted past expiry_date. Every
    read in warranty_service reconciles active rows whose expiry_date is
    before today to 'expired' before returning them.
    """
    __tablename__ = "warranties"
    __table_args__ = (
        db.Index("ix_warranties_store_status_expiry", "store_id", "status", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(
        db.Integer,
        db.ForeignKey("repair_tickets.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    warranty_period_days = db.Column(db.Integer, nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    expiry_date = db.Column(db.Date, nullable=False, index=True)
    warranty_type = db.Column(db.String(16), nullable=False, default="both")
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    terms = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    ticket = db.relationship(
        "RepairTicket",
        backref=db.backref("warranty", uselist=False, cascade="all, delete-orphan"),
    )
    customer = db.relationship("Customer")
    claims = db.relationship(
        "WarrantyClaim",
        backref="warranty",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="WarrantyClaim.claim_date.desc()",
    )

    def __repr__(self) -> str:
        return f"<Warranty id={self.id} ticket_id={self.ticket_id} status={self.status!r} expiry={self.expiry_date}>"

    def to_dict(self, *, include_claims: bool = True) -> dict:
        data = {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "ticket_number": self.ticket.ticket_number if self.ticket else None,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "warranty_period_days": self.warranty_period_days,
            "start_date": to_iso_date(self.start_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "warranty_type": self.warranty_type,
            "status": self.status,
            "terms": self.terms,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_claims:
            data["claims"] = [c.to_dict() for c in self.claims]
        return data


class WarrantyClaim(db.Model):
    """Customer-reported problem against a warranty."""
    __tablename__ = "warranty_claims"
    __table_args__ = (
        db.Index("ix_warranty_claims_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warranty_id = db.Column(
        db.Integer,
        db.ForeignKey("warranties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    issue_description = db.Column(db.Text, nullable=False)
    claim_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")

    resolution_notes = db.Column(db.Text, nullable=True)
    resolution_date = db.Column(db.Date, nullable=True)
    # Follow-up repair, if one was opened
    related_ticket_id = db.Column(
        db.Integer,
        db.ForeignKey("repair_tickets.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warranty_id": self.warranty_id,
            "store_id": self.store_id,
            "issue_description": self.issue_description,
            "claim_date": to_iso_date(self.claim_date),
            "status": self.status,
            "resolution_notes": self.resolution_notes,
            "resolution_date": to_iso_date(self.resolution_date),
            "related_ticket_id": self.related_ticket_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
