import pytest
from rest_framework.test import APIClient

from erp_core.api.permissions import (Permission, has_minimum_role,
                                      membership_has_permission)
from erp_core.models import AuditLog, Bill, OrganizationMembership
from erp_core.services.service_management import create_delivery

from .factories import TestDataFactory


@pytest.fixture
def tenant(db):
    return TestDataFactory(name="Acme", slug="acme")


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


def bill_payload(tenant, vendor, amount="100.00"):
    return {
        "vendor": vendor.pk,
        "bill_date": "2025-09-01",
        "items": [
            {"description": "Paper", "quantity": "1", "unit_price": amount, "account": tenant.expense.pk},
        ],
    }


""" Role model """


@pytest.mark.django_db
def test_role_permissions_are_cumulative(tenant):
    viewer = OrganizationMembership.objects.get(user=tenant.member("v", role="viewer"))
    manager = OrganizationMembership.objects.get(user=tenant.member("m", role="manager"))
    assert membership_has_permission(viewer, Permission.VIEW_BILLS)
    assert not membership_has_permission(viewer, Permission.CREATE_BILL)
    assert membership_has_permission(manager, Permission.CREATE_BILL)
    assert not membership_has_permission(manager, Permission.CREATE_PAYMENT)
    assert has_minimum_role("admin", "accountant")
    assert not has_minimum_role("viewer", "manager")


@pytest.mark.django_db
def test_extra_permissions_on_membership(tenant):
    user = tenant.member("helper", role="viewer", permissions=[Permission.CREATE_BILL])
    membership = OrganizationMembership.objects.get(user=user)
    assert membership_has_permission(membership, Permission.CREATE_BILL)
    assert not membership_has_permission(membership, Permission.VOID_TRANSACTION)


""" Envelope & status codes """


@pytest.mark.django_db
def test_unauthenticated_request_is_401(tenant):
    response = APIClient().get("/api/orgs/acme/vendors/")
    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.django_db
def test_non_member_is_403(tenant):
    outsider = TestDataFactory(name="Other").member("outsider")
    response = client_for(outsider).get("/api/orgs/acme/vendors/")
    assert response.status_code == 403
    assert response.json() == {"success": False, "error": "You are not a member of this organization"}


@pytest.mark.django_db
def test_inactive_membership_is_403(tenant):
    user = tenant.member("gone")
    OrganizationMembership.objects.filter(user=user).update(is_active=False)
    assert client_for(user).get("/api/orgs/acme/vendors/").status_code == 403


@pytest.mark.django_db
def test_unknown_org_is_404(tenant):
    response = client_for(tenant.member("alice")).get("/api/orgs/nope/vendors/")
    assert response.status_code == 404
    assert response.json()["error"] == "Organization not found"


@pytest.mark.django_db
def test_viewer_cannot_create_vendor(tenant):
    viewer = client_for(tenant.member("viewer", role="viewer"))
    assert viewer.get("/api/orgs/acme/vendors/").status_code == 200
    response = viewer.post("/api/orgs/acme/vendors/", {"company_name": "Nope"}, format="json")
    assert response.status_code == 403
    assert response.json()["error"] == "Insufficient permissions"


@pytest.mark.django_db
def test_list_envelope_carries_pagination(tenant):
    client = client_for(tenant.member("alice"))
    for name in ("A", "B", "C"):
        tenant.vendor(name=name)
    body = client.get("/api/orgs/acme/vendors/?page_size=2").json()
    assert body["success"] is True
    assert len(body["data"]) == 2
    assert body["pagination"] == {"page": 1, "page_size": 2, "total": 3, "total_pages": 2}


@pytest.mark.django_db
def test_validation_error_is_400_envelope(tenant):
    client = client_for(tenant.member("alice"))
    response = client.post("/api/orgs/acme/vendors/", {"company_name": "X", "payment_terms_days": 400}, format="json")
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "365" in response.json()["error"]


@pytest.mark.django_db
def test_bad_query_parameter_is_400(tenant):
    client = client_for(tenant.member("alice"))
    response = client.get("/api/orgs/acme/bills/?date_from=yesterday")
    assert response.status_code == 400
    assert client.get("/api/orgs/acme/bills/?min_total=lots").status_code == 400


@pytest.mark.django_db
def test_bill_list_amount_filter_and_stats(tenant):
    vendor = tenant.vendor()
    tenant.bill(vendor=vendor, amounts=("40.00",))
    tenant.bill(vendor=vendor, amounts=("250.00",))
    body = client_for(tenant.member("alice")).get("/api/orgs/acme/bills/?min_total=100").json()
    assert [row["total"] for row in body["data"]] == [250.0]
    assert body["stats"]["draft_count"] == 2


@pytest.mark.django_db
def test_me_lists_memberships(tenant):
    body = client_for(tenant.member("alice")).get("/api/auth/me/").json()
    assert body["data"]["username"] == "alice"
    assert [m["organization_slug"] for m in body["data"]["memberships"]] == ["acme"]


""" Bill workflow over HTTP """


@pytest.mark.django_db
def test_bill_workflow_and_role_gates(tenant):
    vendor = tenant.vendor()
    manager = client_for(tenant.member("manager", role="manager"))
    viewer = client_for(tenant.member("viewer", role="viewer"))

    created = manager.post("/api/orgs/acme/bills/", bill_payload(tenant, vendor), format="json")
    assert created.status_code == 201
    bill_id = created.json()["data"]["id"]
    assert created.json()["data"]["total"] == 100.0

    url = f"/api/orgs/acme/bills/{bill_id}/"
    assert viewer.put(url, {"status": "submitted"}, format="json").status_code == 403
    assert manager.put(url, {"status": "submitted"}, format="json").status_code == 200
    approved = manager.put(url, {"status": "approved"}, format="json")
    assert approved.status_code == 200
    assert approved.json()["data"]["status"] == "approved"
    assert approved.json()["data"]["journal_entry_number"].startswith("JE-")

    # voiding needs void:transaction, which managers lack
    assert manager.post(f"{url}void/").status_code == 403


@pytest.mark.django_db
def test_illegal_transition_is_400(tenant):
    vendor = tenant.vendor()
    client = client_for(tenant.member("alice"))
    bill_id = client.post("/api/orgs/acme/bills/", bill_payload(tenant, vendor), format="json").json()["data"]["id"]
    response = client.put(f"/api/orgs/acme/bills/{bill_id}/", {"status": "paid"}, format="json")
    assert response.status_code == 400
    assert Bill.objects.get(pk=bill_id).status == "draft"


@pytest.mark.django_db
def test_vendor_with_bills_cannot_be_deleted(tenant):
    vendor = tenant.vendor()
    tenant.bill(vendor=vendor)
    client = client_for(tenant.member("alice"))
    response = client.delete(f"/api/orgs/acme/vendors/{vendor.pk}/")
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot delete vendor with 1 bill(s). Mark as inactive instead."


@pytest.mark.django_db
def test_payment_over_http_settles_bill(tenant):
    vendor = tenant.vendor()
    bill = tenant.bill(vendor=vendor, amounts=("80.00",), status="approved")
    client = client_for(tenant.member("acct", role="accountant"))
    response = client.post("/api/orgs/acme/payments/", {
        "vendor": vendor.pk,
        "payment_date": "2025-09-20",
        "amount": "80.00",
        "payment_method": "check",
        "bank_account": tenant.bank.pk,
        "allocations": [{"bill": bill.pk, "amount": "80.00"}],
    }, format="json")
    assert response.status_code == 201
    bill.refresh_from_db()
    assert bill.status == "paid"


@pytest.mark.django_db
def test_payment_from_non_asset_account_rejected(tenant):
    vendor = tenant.vendor()
    bill = tenant.bill(vendor=vendor, amounts=("80.00",), status="approved")
    client = client_for(tenant.member("acct", role="accountant"))
    response = client.post("/api/orgs/acme/payments/", {
        "vendor": vendor.pk,
        "payment_date": "2025-09-20",
        "amount": "80.00",
        "payment_method": "check",
        "bank_account": tenant.payable.pk,
        "allocations": [{"bill": bill.pk, "amount": "80.00"}],
    }, format="json")
    assert response.status_code == 400


""" Module routes """


@pytest.mark.django_db
def test_revaluation_preview_and_missing_fields(tenant):
    product = tenant.product(unit_cost="10.0000")
    client = client_for(tenant.member("acct", role="accountant"))
    missing = client.post("/api/acme/costing/revaluations/preview/", {"product_id": product.pk}, format="json")
    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing required fields: new_unit_cost, quantity"

    preview = client.post("/api/acme/costing/revaluations/preview/", {
        "product_id": product.pk, "new_unit_cost": "11.00", "quantity": "5",
    }, format="json")
    assert preview.status_code == 200
    assert preview.json()["data"]["value_difference"] == 5.0


@pytest.mark.django_db
def test_revaluation_approval_needs_accountant(tenant):
    product = tenant.product()
    acct = client_for(tenant.member("acct", role="accountant"))
    manager = client_for(tenant.member("manager", role="manager"))
    created = acct.post("/api/acme/costing/revaluations/", {
        "product_id": product.pk, "new_unit_cost": "12.00", "quantity": "10", "reason": "Recount",
    }, format="json")
    assert created.status_code == 201
    reval_id = created.json()["data"]["id"]
    assert manager.post(f"/api/acme/costing/revaluations/{reval_id}/approve/").status_code == 403
    assert acct.post(f"/api/acme/costing/revaluations/{reval_id}/approve/").status_code == 200
    posted = acct.post(f"/api/acme/costing/revaluations/{reval_id}/post/")
    assert posted.json()["data"]["status"] == "posted"


@pytest.mark.django_db
def test_ncr_to_capa_and_close_permissions(tenant):
    manager = client_for(tenant.member("manager", role="manager"))
    ncr = manager.post("/api/acme/quality/ncr/", {
        "title": "Leaking valve", "description": "Found during test", "source": "in_process",
    }, format="json")
    assert ncr.status_code == 201
    ncr_id = ncr.json()["data"]["id"]

    capa = manager.post("/api/acme/quality/capa/", {"ncr_id": ncr_id}, format="json")
    assert capa.status_code == 201
    capa_id = capa.json()["data"]["id"]
    again = manager.post("/api/acme/quality/capa/", {"ncr_id": ncr_id}, format="json")
    assert again.status_code == 400

    url = f"/api/acme/quality/capa/{capa_id}/"
    for status_ in ("in_progress", "implemented"):
        assert manager.put(url, {"status": status_}, format="json").status_code == 200
    # moving into verification and past it both need verify:capa, an accountant permission
    assert manager.put(url, {"status": "verifying"}, format="json").status_code == 403
    acct = client_for(tenant.member("acct", role="accountant"))
    assert acct.put(url, {"status": "verifying"}, format="json").status_code == 200
    assert manager.put(url, {"status": "verified"}, format="json").status_code == 403
    assert acct.put(url, {"status": "verified"}, format="json").status_code == 200


@pytest.mark.django_db
def test_audit_log_lists_actions(tenant):
    admin = client_for(tenant.member("alice"))
    admin.post("/api/orgs/acme/vendors/", {"company_name": "Logged Ltd"}, format="json")
    body = admin.get("/api/acme/security/audit-logs/?object_type=Vendor").json()
    assert body["success"] is True
    assert [row["action"] for row in body["data"]] == ["create"]
    assert AuditLog.objects.filter(organization=tenant.organization, object_type="Vendor").count() == 1


@pytest.mark.django_db
def test_vendor_update_audits_only_accepted_fields(tenant):
    vendor = tenant.vendor()
    admin = client_for(tenant.member("alice"))
    response = admin.put(f"/api/orgs/acme/vendors/{vendor.pk}/", {
        "payment_terms_days": 45, "vendor_number": "HIJACK", "favourite_colour": "teal",
    }, format="json")
    assert response.status_code == 200
    assert response.json()["data"]["vendor_number"] != "HIJACK"
    entry = AuditLog.objects.get(organization=tenant.organization, object_type="Vendor", action="update")
    assert entry.changes == {"payment_terms_days": 45}


@pytest.mark.django_db
def test_account_update_audits_only_accepted_fields(tenant):
    admin = client_for(tenant.member("alice"))
    response = admin.put(f"/api/orgs/acme/chart-of-accounts/{tenant.expense.pk}/", {
        "name": "Office costs", "balance": "1000000.00",
    }, format="json")
    assert response.status_code == 200
    entry = AuditLog.objects.get(organization=tenant.organization, object_type="Account", action="update")
    assert entry.changes == {"name": "Office costs"}


@pytest.mark.django_db
def test_time_entry_cannot_target_other_org_delivery(tenant):
    other = TestDataFactory(name="Other")
    other_service = other.service()
    other_customer = other.customer()
    delivery = create_delivery(other.organization, None, {"service": other_service, "customer": other_customer})
    client = client_for(tenant.member("tech", role="manager"))
    response = client.post("/api/acme/services/time-entries/", {
        "delivery": delivery.pk, "duration_hours": "1.00", "entry_date": "2025-09-01",
    }, format="json")
    assert response.status_code == 400
