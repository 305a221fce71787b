from django.db import models
from .entitymembership import Company


class DocumentSequence(models.Model):
    """
    Last number issued per (company, document type, year).
    Rows are locked with select_for_update while a number is taken,
    and a new year starts a new row, so numbering restarts at 0001.
    """

    INVOICE = "invoice"
    JOURNAL = "journal"
    DOC_TYPE_CHOICES = [
        (INVOICE, "Invoice"),
        (JOURNAL, "Journal entry"),
    ]

    # doc_type -> number prefix
    PREFIXES = {
        INVOICE: "INV",
        JOURNAL: "JE",
    }

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="sequences"
    )
    doc_type = models.CharField(max_length=10, choices=DOC_TYPE_CHOICES)
    year = models.PositiveIntegerField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "doc_type", "year"],
                name="uq_sequence_company_type_year",
            )
        ]

    def __str__(self):
        return f"{self.company_id}:{self.doc_type}:{self.year}={self.last_value}"
