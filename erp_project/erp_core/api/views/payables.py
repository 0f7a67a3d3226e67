from django.db.models import DecimalField, OuterRef, Q, Subquery, Sum, Value
from django.db.models.functions import Coalesce
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ...models import Bill, Payment, Vendor
from ...models.bill import PAYABLE_STATUSES
from ...services import bills as bill_service
from ...services.audit_helper import field_changes, log_action
from ...services.payment import payment_stats, record_payment
from ..envelope import fail, ok, paginate, parse_bool, parse_date, parse_decimal
from ..permissions import Permission, check_permission, require_permission
from ..serializers import (BillInputSerializer, BillListSerializer,
                           BillSerializer, BillStatusSerializer,
                           PaymentInputSerializer, PaymentSerializer,
                           VendorSerializer)
from .common import context_for, get_for_org, query_id

RECENT_BILLS = 10


def _with_balance(vendors):
    """Annotate each vendor with the amount still owed on open bills."""
    open_due = (
        Bill.objects.filter(vendor=OuterRef("pk"), status__in=PAYABLE_STATUSES)
        .order_by()
        .values("vendor")
        .annotate(s=Sum("amount_due"))
        .values("s")
    )
    return vendors.annotate(
        balance=Coalesce(
            Subquery(open_due, output_field=DecimalField(max_digits=18, decimal_places=2)),
            Value(0, output_field=DecimalField(max_digits=18, decimal_places=2)),
        )
    )


# ----------------------------
# Vendors
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def vendor_list_create(request, org_slug):
    """List vendors (with open balance) or create one"""
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_VENDORS)
        qs = Vendor.objects.for_organization(org)
        search = request.query_params.get("search")
        if search:
            qs = qs.filter(
                Q(company_name__icontains=search)
                | Q(contact_name__icontains=search)
                | Q(email__icontains=search)
                | Q(vendor_number__icontains=search)
            )
        is_active = parse_bool(request, "is_active")
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        items, pagination = paginate(request, _with_balance(qs))
        rows = []
        for vendor in items:
            row = VendorSerializer(vendor).data
            row["balance"] = vendor.balance
            rows.append(row)
        return ok(rows, pagination=pagination)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_VENDORS)
    serializer = VendorSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    vendor = serializer.save()
    log_action(action="create", instance=vendor, user=request.user)
    return ok(VendorSerializer(vendor).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def vendor_detail(request, org_slug, pk):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_VENDORS)
        vendor = get_for_org(Vendor, org, pk, "Vendor")
        data = VendorSerializer(vendor).data
        data["balance"] = bill_service.vendor_balance(vendor)
        data["recent_bills"] = BillListSerializer(
            vendor.bills.order_by("-bill_date", "-id")[:RECENT_BILLS], many=True
        ).data
        return ok(data)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_VENDORS)
    vendor = get_for_org(Vendor, org, pk, "Vendor")

    if request.method == "PUT":
        serializer = VendorSerializer(
            vendor, data=request.data, partial=True, context=context_for(request, org)
        )
        serializer.is_valid(raise_exception=True)
        vendor = serializer.save()
        log_action(
            action="update", instance=vendor, user=request.user,
            changes=field_changes(serializer.validated_data),
        )
        return ok(VendorSerializer(vendor).data)

    bill_count = vendor.bills.count()
    if bill_count:
        return fail(
            f"Cannot delete vendor with {bill_count} bill(s). Mark as inactive instead."
        )
    log_action(
        action="delete", instance=vendor, user=request.user,
        changes={"company_name": vendor.company_name},
    )
    vendor.delete()
    return ok({"deleted": True})


# ----------------------------
# Bills
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def bill_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_BILLS)
        qs = Bill.objects.for_organization(org).select_related("vendor", "journal_entry")
        bill_status = request.query_params.get("status")
        if bill_status:
            qs = qs.filter(status=bill_status)
        vendor_id = query_id(request, "vendor_id")
        if vendor_id:
            qs = qs.filter(vendor_id=vendor_id)
        date_from = parse_date(request, "date_from")
        if date_from:
            qs = qs.filter(bill_date__gte=date_from)
        date_to = parse_date(request, "date_to")
        if date_to:
            qs = qs.filter(bill_date__lte=date_to)
        min_total = parse_decimal(request, "min_total")
        if min_total is not None:
            qs = qs.filter(total__gte=min_total)
        max_total = parse_decimal(request, "max_total")
        if max_total is not None:
            qs = qs.filter(total__lte=max_total)
        search = request.query_params.get("search")
        if search:
            qs = qs.filter(
                Q(bill_number__icontains=search)
                | Q(vendor_reference__icontains=search)
                | Q(vendor__company_name__icontains=search)
            )
        stats = bill_service.bill_stats(Bill.objects.for_organization(org))
        items, pagination = paginate(request, qs)
        return ok(
            BillListSerializer(items, many=True).data, pagination=pagination, stats=stats
        )

    org, _ = require_permission(request, org_slug, Permission.CREATE_BILL)
    serializer = BillInputSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    bill = bill_service.create_bill(org, request.user, serializer.validated_data)
    return ok(BillSerializer(bill).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PATCH", "PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def bill_detail(request, org_slug, pk):
    """
    PATCH edits a draft bill (items replaced when given),
    PUT moves the bill to another status.
    """
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_BILLS)
        bill = get_for_org(Bill, org, pk, "Bill")
        return ok(BillSerializer(bill).data)

    if request.method == "PUT":
        org, membership = require_permission(request, org_slug, Permission.VIEW_BILLS)
        serializer = BillStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]
        check_permission(membership, {
            "approved": Permission.APPROVE_BILL,
            "voided": Permission.VOID_TRANSACTION,
        }.get(new_status, Permission.CREATE_BILL))
        bill = get_for_org(Bill, org, pk, "Bill")
        bill = bill_service.change_bill_status(bill, new_status, user=request.user)
        return ok(BillSerializer(bill).data)

    org, _ = require_permission(request, org_slug, Permission.CREATE_BILL)
    bill = get_for_org(Bill, org, pk, "Bill")

    if request.method == "PATCH":
        serializer = BillInputSerializer(
            data=request.data, partial=True, context=context_for(request, org)
        )
        serializer.is_valid(raise_exception=True)
        bill = bill_service.update_bill(bill, request.user, serializer.validated_data)
        return ok(BillSerializer(bill).data)

    bill_service.delete_bill(bill, user=request.user)
    return ok({"deleted": True})


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def bill_void(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.VOID_TRANSACTION)
    bill = get_for_org(Bill, org, pk, "Bill")
    bill = bill_service.void_bill(bill, user=request.user)
    return ok(BillSerializer(bill).data)


# ----------------------------
# Payments
# ----------------------------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def payment_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_PAYMENTS)
        qs = (
            Payment.objects.for_organization(org)
            .select_related("vendor", "bank_account")
            .prefetch_related("allocations__bill")
        )
        vendor_id = query_id(request, "vendor_id")
        if vendor_id:
            qs = qs.filter(vendor_id=vendor_id)
        method = request.query_params.get("payment_method")
        if method:
            qs = qs.filter(payment_method=method)
        date_from = parse_date(request, "date_from")
        if date_from:
            qs = qs.filter(payment_date__gte=date_from)
        date_to = parse_date(request, "date_to")
        if date_to:
            qs = qs.filter(payment_date__lte=date_to)
        stats = payment_stats(qs)
        items, pagination = paginate(request, qs)
        return ok(PaymentSerializer(items, many=True).data, pagination=pagination, stats=stats)

    org, _ = require_permission(request, org_slug, Permission.CREATE_PAYMENT)
    serializer = PaymentInputSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    payment = record_payment(org, request.user, serializer.validated_data)
    return ok(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def payment_detail(request, org_slug, pk):
    org, _ = require_permission(request, org_slug, Permission.VIEW_PAYMENTS)
    payment = get_for_org(Payment, org, pk, "Payment")
    return ok(PaymentSerializer(payment).data)
