import datetime
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.utils import timezone

CENT = Decimal("0.01")
UNIT_COST_PLACES = Decimal("0.0001")


def to_decimal(value, field="value") -> Decimal:
    """Coerce numbers and numeric strings to Decimal, rejecting junk."""
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return Decimal("0")
    try:
        # str() first so floats don't carry binary noise into the ledger
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")


def money(value) -> Decimal:
    """Round to cents, half up, the way every stored amount is kept."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def unit_cost(value) -> Decimal:
    return to_decimal(value).quantize(UNIT_COST_PLACES, rounding=ROUND_HALF_UP)


def ensure_same_organization(instance, *field_names):
    """
    Reject foreign keys that point into another tenant.
    Each named field must be empty or share instance.organization_id.
    """
    errors = {}
    for name in field_names:
        related = getattr(instance, name, None)
        if related is None:
            continue
        if getattr(related, "organization_id", None) != instance.organization_id:
            errors[name] = f"{name} must belong to the same organization"
    if errors:
        raise ValidationError(errors)


# ---------- Document numbering ----------
def next_document_number(model, organization, field, prefix, width):
    """
    Next sequential number for `prefix`, scoped to one organization.
    e.g. prefix "BILL-2025-" with width 4 → BILL-2025-0001, BILL-2025-0002 ...
    """
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    existing = (
        model.objects.filter(organization=organization, **{f"{field}__startswith": prefix})
        .values_list(field, flat=True)
    )
    # numeric max, not lexical, so 10000 sorts after 9999
    highest = 0
    for number in existing:
        match = pattern.match(number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}{highest + 1:0{width}d}"


def _as_date(value):
    # model fields may still hold an ISO string before full_clean() runs
    if isinstance(value, str):
        return datetime.date.fromisoformat(value)
    return value or timezone.localdate()


def yearly_prefix(code, on_date=None):
    year = _as_date(on_date).year
    return f"{code}-{year}-"


def monthly_prefix(code, on_date=None):
    day = _as_date(on_date)
    return f"{code}{day.year}{day.month:02d}"
