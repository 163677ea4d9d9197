# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


INVOICE_DOCUMENT = ("INVOICE", "HD")
ORDER_DOCUMENT = ("ORDER", "DH")


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _current(document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )


def next_document_number(*, document_type: str, prefix: str, pad: int = 4) -> str:
    """
    Allocate the next number for a document type (e.g. "HD-0007").

    Runs inside the caller's transaction: the increment commits or rolls back
    together with the document that uses the number.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current(document_type) - 1
    else:
        seq = DocumentSequence(document_type=document_type, next_number=2)
        try:
            with db.session.begin_nested():
                db.session.add(seq)
            next_num = 1
        except IntegrityError:
            # Another writer created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current(document_type) - 1

    return f"{prefix}-{next_num:0{pad}d}"


def next_invoice_number() -> str:
    document_type, prefix = INVOICE_DOCUMENT
    return next_document_number(document_type=document_type, prefix=prefix)


def next_order_number() -> str:
    document_type, prefix = ORDER_DOCUMENT
    return next_document_number(document_type=document_type, prefix=prefix)
