# Overview: Per-store document number allocation (ticket numbers).

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(ValueError):
    pass


def next_document_number(
    *,
    store_id: int,
    document_type: str,
    prefix: str,
    pad: int = 5,
) -> str:
    """
    Allocate the next document number for a store/type, e.g. TK-001-00042.

    Increments the (store_id, document_type) row in place so two concurrent
    intakes never read the same value. Does not commit: the number belongs to
    the caller's unit of work and is released if that unit rolls back.

    The first allocation for a store inserts the sequence row. Two first
    allocations racing each other surface as IntegrityError on the unique
    (store_id, document_type) constraint.
    """
    if not store_id:
        raise DocumentSequenceError("store_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(store_id=store_id, document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        db.session.add(DocumentSequence(store_id=store_id, document_type=document_type, next_number=2))
        db.session.flush()
        next_num = 1

    return f"{prefix}-{store_id:03d}-{next_num:0{pad}d}"
