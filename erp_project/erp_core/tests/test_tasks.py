import datetime
from decimal import Decimal

import pytest

from erp_core import tasks
from erp_core.models import Discount

from .factories import TestDataFactory


@pytest.mark.django_db
def test_mark_overdue_bills_task_limits_to_organization():
    a = TestDataFactory(name="Company A")
    b = TestDataFactory(name="Company B")
    bill_a = a.bill(status="approved", bill_date=datetime.date(2020, 1, 1))
    bill_b = b.bill(status="approved", bill_date=datetime.date(2020, 1, 1))

    # call the task body directly, no broker needed
    count = tasks.mark_overdue_bills(organization_id=a.organization.pk)

    bill_a.refresh_from_db()
    bill_b.refresh_from_db()
    assert count == 1
    assert bill_a.status == "overdue"
    assert bill_b.status == "approved"


@pytest.mark.django_db
def test_mark_overdue_bills_task_runs_eagerly_for_all():
    a = TestDataFactory(name="Company A")
    a.bill(status="approved", bill_date=datetime.date(2020, 1, 1))
    a.bill(status="partially_paid", bill_date=datetime.date(2020, 1, 1))

    result = tasks.mark_overdue_bills.apply()
    assert result.get() == 2


@pytest.mark.django_db
def test_expire_discounts_task():
    f = TestDataFactory()
    Discount.objects.create(
        organization=f.organization,
        code="OLD",
        name="Old promo",
        value=Decimal("5"),
        valid_from=datetime.date(2020, 1, 1),
        valid_to=datetime.date(2020, 2, 1),
    )
    assert tasks.expire_discounts() == 1
    assert not Discount.objects.get(code="OLD").is_active
