# Overview: Service-layer operations for document codes; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ValidationError
from ..models import DocumentSequence


SALE_DOCUMENT = ("SALE", "SAL")
PURCHASE_DOCUMENT = ("PURCHASE", "PUR")
EXCHANGE_DOCUMENT = ("EXCHANGE", "FX")


def _current_number(document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )


def next_document_number(*, document_type: str, prefix: str, pad: int = 5) -> str:
    """
    Allocate the next code for a document type, e.g. SAL-00001.

    Runs inside the caller's unit of work: the counter row is bumped with an
    atomic UPDATE, so the number is only consumed if the caller commits.
    """
    if not document_type:
        raise ValidationError("document_type is required")
    if not prefix:
        raise ValidationError("prefix is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(document_type) - 1
    else:
        seq = DocumentSequence(document_type=document_type, next_number=2)
        try:
            with db.session.begin_nested():
                db.session.add(seq)
            next_num = 1
        except IntegrityError:
            # another writer created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_number(document_type) - 1

    return f"{prefix}-{next_num:0{pad}d}"
