import logging
import re
from django.db import IntegrityError, transaction
from django.utils import timezone
from ..models import DocumentSequence, Invoice, JournalEntry

logger = logging.getLogger(__name__)


# ----------------------------------------------
# Document Numbering Generator
# ----------------------------------------------
def format_number(doc_type, year, value):
    """("journal", 2025, 7) -> "JE-2025-0007" """
    prefix = DocumentSequence.PREFIXES[doc_type]
    return f"{prefix}-{year}-{value:04d}"


def _lock_sequence(company, doc_type, year):
    """
    Fetch the sequence row under select_for_update, creating it on first
    use. A concurrent first creation raises IntegrityError and we re-read.
    """
    try:
        return DocumentSequence.objects.select_for_update().get(
            company=company, doc_type=doc_type, year=year
        )
    except DocumentSequence.DoesNotExist:
        try:
            with transaction.atomic():
                return DocumentSequence.objects.create(
                    company=company,
                    doc_type=doc_type,
                    year=year,
                    last_value=highest_issued(company, doc_type, year),
                )
        except IntegrityError:
            return DocumentSequence.objects.select_for_update().get(
                company=company, doc_type=doc_type, year=year
            )


def next_document_number(company, doc_type, today=None):
    """
    Take the next number for (company, doc_type, current year).
    Must run inside the caller's transaction: the lock on the sequence row
    is held until it commits, which serializes concurrent creations.
    """
    year = (today or timezone.localdate()).year
    with transaction.atomic():
        seq = _lock_sequence(company, doc_type, year)
        seq.last_value += 1
        seq.save(update_fields=["last_value"])
    return format_number(doc_type, year, seq.last_value)


# ----------------------------------------------
# Recovery after a duplicate number
# ----------------------------------------------
_NUMBER_SOURCES = {
    DocumentSequence.JOURNAL: (JournalEntry, "entry_number"),
    DocumentSequence.INVOICE: (Invoice, "invoice_number"),
}


def highest_issued(company, doc_type, year):
    """Highest NNNN already stored for the year, 0 if none."""
    model, field = _NUMBER_SOURCES[doc_type]
    prefix = f"{DocumentSequence.PREFIXES[doc_type]}-{year}-"
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    numbers = model.objects.filter(
        company=company, **{f"{field}__startswith": prefix}
    ).values_list(field, flat=True)
    highest = 0
    for number in numbers:
        match = pattern.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def resync_sequence(company, doc_type, today=None):
    """
    Move the counter past every number already used, e.g. after rows
    were imported with explicit numbers.
    """
    year = (today or timezone.localdate()).year
    with transaction.atomic():
        seq = _lock_sequence(company, doc_type, year)
        highest = highest_issued(company, doc_type, year)
        if highest > seq.last_value:
            logger.warning(
                "Sequence %s/%s/%s behind stored numbers, moving %s -> %s",
                company.pk, doc_type, year, seq.last_value, highest,
            )
            seq.last_value = highest
            seq.save(update_fields=["last_value"])
    return seq.last_value
