import logging

from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ...models import Account, JournalEntry
from ...services.audit_helper import field_changes, log_action
from ...services.posting import create_posted_journal
from ..envelope import fail, ok, paginate, parse_bool, parse_date
from ..permissions import Permission, require_permission
from ..serializers import (AccountSerializer, JournalEntryInputSerializer,
                           JournalEntrySerializer)
from .common import context_for, get_for_org

logger = logging.getLogger(__name__)


# ---------- Chart of accounts ----------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def account_list_create(request, org_slug):
    """List the chart of accounts or add an account"""
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_CHART_OF_ACCOUNTS)
        qs = Account.objects.for_organization(org)
        account_type = request.query_params.get("account_type")
        if account_type:
            qs = qs.filter(account_type=account_type)
        is_active = parse_bool(request, "is_active")
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        search = request.query_params.get("search")
        if search:
            qs = qs.filter(Q(code__icontains=search) | Q(name__icontains=search))
        return ok(AccountSerializer(qs, many=True).data)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_CHART_OF_ACCOUNTS)
    serializer = AccountSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    account = serializer.save()
    log_action(action="create", instance=account, user=request.user)
    return ok(AccountSerializer(account).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def account_detail(request, org_slug, pk):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_CHART_OF_ACCOUNTS)
        account = get_for_org(Account, org, pk, "Account")
        return ok(AccountSerializer(account).data)

    org, _ = require_permission(request, org_slug, Permission.MANAGE_CHART_OF_ACCOUNTS)
    account = get_for_org(Account, org, pk, "Account")

    if request.method == "PUT":
        serializer = AccountSerializer(
            account, data=request.data, partial=True, context=context_for(request, org)
        )
        serializer.is_valid(raise_exception=True)
        account = serializer.save()
        log_action(
            action="update", instance=account, user=request.user,
            changes=field_changes(serializer.validated_data),
        )
        return ok(AccountSerializer(account).data)

    if account.is_used():
        return fail("Cannot delete an account with journal lines. Mark it inactive instead.")
    log_action(action="delete", instance=account, user=request.user, changes={"code": account.code})
    account.delete()
    return ok({"deleted": True})


# ---------- Journal entries ----------
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def journal_entry_list_create(request, org_slug):
    if request.method == "GET":
        org, _ = require_permission(request, org_slug, Permission.VIEW_JOURNAL_ENTRIES)
        qs = JournalEntry.objects.for_organization(org).prefetch_related("lines__account")
        for param in ("status", "source_type"):
            value = request.query_params.get(param)
            if value:
                qs = qs.filter(**{param: value})
        date_from = parse_date(request, "date_from")
        if date_from:
            qs = qs.filter(date__gte=date_from)
        date_to = parse_date(request, "date_to")
        if date_to:
            qs = qs.filter(date__lte=date_to)
        items, pagination = paginate(request, qs)
        return ok(JournalEntrySerializer(items, many=True).data, pagination=pagination)

    org, _ = require_permission(request, org_slug, Permission.CREATE_JOURNAL_ENTRY)
    serializer = JournalEntryInputSerializer(data=request.data, context=context_for(request, org))
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    je = create_posted_journal(
        organization=org,
        date=data["date"],
        description=data["description"],
        lines=[
            (line["account"], line["debit"], line["credit"], line["description"])
            for line in data["lines"]
        ],
        user=request.user,
    )
    log_action(action="create", instance=je, user=request.user)
    return ok(JournalEntrySerializer(je).data, status=status.HTTP_201_CREATED)
