import pytest
from rest_framework.test import APIClient

from erp_core.models import Bill, NonConformanceReport, Vendor

from .factories import TestDataFactory


@pytest.fixture
def two_tenants(db):
    return TestDataFactory(name="Company A"), TestDataFactory(name="Company B")


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.mark.django_db
def test_manager_scopes_rows_to_organization(two_tenants):
    a, b = two_tenants
    a.vendor(name="Only A")
    b.vendor(name="Only B")
    assert list(Vendor.objects.for_organization(a.organization).values_list("company_name", flat=True)) == ["Only A"]
    assert Vendor.objects.count() == 2


@pytest.mark.django_db
def test_vendor_list_only_shows_own_tenant(two_tenants):
    a, b = two_tenants
    a.vendor(name="Only A")
    b.vendor(name="Only B")
    body = client_for(a.member("alice")).get("/api/orgs/company-a/vendors/").json()
    assert [row["company_name"] for row in body["data"]] == ["Only A"]


@pytest.mark.django_db
def test_member_of_one_org_cannot_read_another(two_tenants):
    a, b = two_tenants
    alice = client_for(a.member("alice"))
    assert alice.get("/api/orgs/company-b/vendors/").status_code == 403
    assert alice.get("/api/company-b/quality/ncr/").status_code == 403


@pytest.mark.django_db
def test_other_tenant_detail_is_404(two_tenants):
    a, b = two_tenants
    foreign_vendor = b.vendor(name="Hidden")
    foreign_bill = b.bill()
    alice = client_for(a.member("alice"))

    response = alice.get(f"/api/orgs/company-a/vendors/{foreign_vendor.pk}/")
    assert response.status_code == 404
    assert response.json()["error"] == "Vendor not found"
    assert alice.get(f"/api/orgs/company-a/bills/{foreign_bill.pk}/").status_code == 404
    assert alice.delete(f"/api/orgs/company-a/bills/{foreign_bill.pk}/").status_code == 404
    assert Bill.objects.filter(pk=foreign_bill.pk).exists()


@pytest.mark.django_db
def test_bill_with_foreign_vendor_is_rejected(two_tenants):
    a, b = two_tenants
    foreign_vendor = b.vendor(name="Hidden")
    alice = client_for(a.member("alice"))
    response = alice.post("/api/orgs/company-a/bills/", {
        "vendor": foreign_vendor.pk,
        "bill_date": "2025-09-01",
        "items": [{"description": "X", "quantity": "1", "unit_price": "10.00", "account": a.expense.pk}],
    }, format="json")
    assert response.status_code == 400
    assert not Bill.objects.filter(organization=a.organization).exists()


@pytest.mark.django_db
def test_bill_line_with_foreign_account_is_rejected(two_tenants):
    a, b = two_tenants
    vendor = a.vendor()
    alice = client_for(a.member("alice"))
    response = alice.post("/api/orgs/company-a/bills/", {
        "vendor": vendor.pk,
        "bill_date": "2025-09-01",
        "items": [{"description": "X", "quantity": "1", "unit_price": "10.00", "account": b.expense.pk}],
    }, format="json")
    assert response.status_code == 400


@pytest.mark.django_db
def test_payment_cannot_settle_foreign_bill(two_tenants):
    a, b = two_tenants
    vendor = a.vendor()
    foreign_bill = b.bill(status="approved")
    alice = client_for(a.member("alice"))
    response = alice.post("/api/orgs/company-a/payments/", {
        "vendor": vendor.pk,
        "payment_date": "2025-09-20",
        "amount": "100.00",
        "payment_method": "bank_transfer",
        "bank_account": a.bank.pk,
        "allocations": [{"bill": foreign_bill.pk, "amount": "100.00"}],
    }, format="json")
    assert response.status_code == 400
    foreign_bill.refresh_from_db()
    assert foreign_bill.amount_paid == 0


@pytest.mark.django_db
def test_costing_rejects_foreign_product(two_tenants):
    a, b = two_tenants
    foreign_product = b.product()
    alice = client_for(a.member("alice"))
    response = alice.post("/api/company-a/costing/revaluations/preview/", {
        "product_id": foreign_product.pk, "new_unit_cost": "12.00", "quantity": "1",
    }, format="json")
    assert response.status_code == 404
    assert response.json()["error"] == "Product not found"


@pytest.mark.django_db
def test_ncr_with_foreign_vendor_is_rejected(two_tenants):
    a, b = two_tenants
    foreign_vendor = b.vendor()
    alice = client_for(a.member("alice"))
    response = alice.post("/api/company-a/quality/ncr/", {
        "title": "Bad batch", "description": "Rust", "source": "receiving_inspection",
        "vendor": foreign_vendor.pk,
    }, format="json")
    assert response.status_code == 400
    assert not NonConformanceReport.objects.exists()


@pytest.mark.django_db
def test_document_numbers_are_per_organization(two_tenants):
    a, b = two_tenants
    first_a = a.bill()
    first_b = b.bill()
    assert first_a.bill_number == first_b.bill_number == "BILL-2025-0001"
    assert first_a.vendor.vendor_number == first_b.vendor.vendor_number == "VEND-0001"
