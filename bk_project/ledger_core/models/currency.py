from django.db import models


# ---------- Currency ----------
class Currency(models.Model):
    """
    ISO currencies. A company reports in its base currency; documents may be
    raised in any other one and are normalized with an exchange rate.
    """
    code = models.CharField(max_length=3, primary_key=True)  # 'BDT', 'USD'
    name = models.CharField(max_length=64)  # 'Bangladeshi Taka'
    symbol = models.CharField(max_length=8, blank=True, null=True)
    # JPY has no sub-units, BDT has two
    decimal_places = models.PositiveSmallIntegerField(default=2)

    def __str__(self):
        return f"{self.code} ({self.symbol or ''})"

    class Meta:
        verbose_name_plural = "currencies"
