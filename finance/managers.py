from django.db import models
from django.db.models import F


# ------------------------------------------------------------------------------
# InvoiceSequence
# ------------------------------------------------------------------------------

class InvoiceSequenceQuerySet(models.QuerySet):
    def for_financial_year(self, financial_year: str):
        return self.filter(financial_year=financial_year)


class InvoiceSequenceManager(models.Manager.from_queryset(InvoiceSequenceQuerySet)):
    def increment(self, financial_year: str):
        """
        Single-statement increment (UPDATE ... SET n = n + 1).
        Returns the value stored after the update, or None when no row exists.
        """
        updated = self.for_financial_year(financial_year).update(
            current_sequence_no=F("current_sequence_no") + 1,
        )
        if not updated:
            return None
        return (
            self.for_financial_year(financial_year)
            .values_list("current_sequence_no", flat=True)
            .get()
        )
