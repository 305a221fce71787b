from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from django.core.exceptions import ValidationError

# Base amounts are kept in cents
CENT = Decimal("0.01")
ONE = Decimal("1")


# ----------------------------------------------
# Multi-currency normalization
# ----------------------------------------------
def to_decimal(value, field="amount"):
    """Coerce ints, strings and Decimals; floats go through str()."""
    if value is None or value == "":
        return Decimal("0")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")
    # NaN and Infinity parse but cannot be compared or quantized
    if not number.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}")
    return number



def normalize_rate(rate=None):
    """Exchange rate defaults to 1 and must be strictly positive."""
    if rate is None or rate == "":
        return ONE
    rate = to_decimal(rate, "exchange rate")
    if rate <= 0:
        raise ValidationError("Exchange rate must be greater than 0")
    return rate


def normalize_amount(amount, rate=None):
    """base = foreign × rate, rounded half-up to cents"""
    amount = to_decimal(amount)
    return (amount * normalize_rate(rate)).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_lines(lines, rate=None):
    """
    Return copies of ``lines`` (dicts with debit/credit in the document
    currency) with debit, credit, debit_base, credit_base and
    exchange_rate filled in. The rate is the entry's rate; every line
    carries it so it never has to be looked up again.
    """
    rate = normalize_rate(rate)
    normalized = []
    for line in lines:
        row = dict(line)
        row["debit"] = to_decimal(line.get("debit"), "debit")
        row["credit"] = to_decimal(line.get("credit"), "credit")
        row["debit_base"] = normalize_amount(row["debit"], rate)
        row["credit_base"] = normalize_amount(row["credit"], rate)
        row["exchange_rate"] = rate
        normalized.append(row)
    return normalized
