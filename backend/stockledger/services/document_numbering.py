"""
Document Numbering Service

Issues human-readable document numbers (ADJ-000001, INV-000042) from the
document_sequences counter table.

The counter row is locked with SELECT ... FOR UPDATE and incremented in the
caller's transaction, so a rolled-back document gives its number back and two
concurrent callers never see the same value.
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.logging_config import get_logger
from stockledger.models.document_sequence import DocumentSequence

logger = get_logger(__name__)

ADJUSTMENT_SEQUENCE = "inventory_adjustment"
INVOICE_SEQUENCE = "invoice"


def format_document_number(prefix: str, value: int, digits: int = None) -> str:
    """
    Format a sequence value as PREFIX-000123.

    Values wider than the padding are kept whole rather than truncated.
    """
    if digits is None:
        digits = settings.DOCUMENT_NUMBER_DIGITS
    return f"{prefix}-{str(value).zfill(digits)}"


def _lock_counter(db: Session, name: str):
    return (
        db.query(DocumentSequence)
        .filter(DocumentSequence.name == name)
        .with_for_update()
        .populate_existing()
        .first()
    )


def reserve_next(db: Session, name: str) -> int:
    """
    Reserve the next value of a named sequence.

    Does NOT commit; the value is consumed only when the caller commits.
    """
    counter = _lock_counter(db, name)

    if counter is None:
        # First use. Another session may insert the same row concurrently,
        # so the insert runs in a savepoint and falls back to the locked read.
        savepoint = db.begin_nested()
        try:
            counter = DocumentSequence(name=name, current_value=1)
            db.add(counter)
            db.flush()
            savepoint.commit()
            logger.debug(f"Document sequence '{name}' initialised at 1")
            return 1
        except IntegrityError:
            savepoint.rollback()
            logger.debug(f"Document sequence '{name}' created concurrently, retrying")
            counter = _lock_counter(db, name)
            if counter is None:
                raise

    counter.current_value = (counter.current_value or 0) + 1
    db.flush()
    logger.debug(f"Document sequence '{name}' reserved {counter.current_value}")
    return counter.current_value


def next_adjustment_number(db: Session) -> str:
    """Reserve the next inventory adjustment number."""
    value = reserve_next(db, ADJUSTMENT_SEQUENCE)
    return format_document_number(settings.ADJUSTMENT_NUMBER_PREFIX, value)


def next_invoice_number(db: Session) -> str:
    """Reserve the next invoice number."""
    value = reserve_next(db, INVOICE_SEQUENCE)
    return format_document_number(settings.INVOICE_NUMBER_PREFIX, value)
