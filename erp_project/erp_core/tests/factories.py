import datetime
from decimal import Decimal

from erp_core.models import (Account, Bill, BillItem, Customer, Organization,
                             OrganizationMembership, Product, ServiceCatalog,
                             User, Vendor, Warehouse)

# Accounts the automatic postings look up by code prefix
CHART_OF_ACCOUNTS = [
    ("1000", "Bank", "asset"),
    ("1300", "Inventory", "asset"),
    ("2000", "Accounts Payable", "liability"),
    ("2150", "Withholding Tax Payable", "liability"),
    ("2300", "Landed Cost Clearing", "liability"),
    ("4900", "Revaluation Gain", "revenue"),
    ("6000", "Operating Expenses", "expense"),
    ("6900", "Revaluation Loss", "expense"),
]


class TestDataFactory:
    """Builds a ready-to-post tenant: organization, members and chart of accounts."""

    __test__ = False

    def __init__(self, name="Test Co", slug=None):
        self.organization = Organization.objects.create(
            name=name, slug=slug or name.lower().replace(" ", "-")
        )
        self.accounts = {}
        for code, acct_name, account_type in CHART_OF_ACCOUNTS:
            self.accounts[code] = Account.objects.create(
                organization=self.organization,
                code=code,
                name=acct_name,
                account_type=account_type,
            )

    @property
    def bank(self):
        return self.accounts["1000"]

    @property
    def inventory(self):
        return self.accounts["1300"]

    @property
    def payable(self):
        return self.accounts["2000"]

    @property
    def expense(self):
        return self.accounts["6000"]

    def member(self, username, role="admin", permissions=None):
        user = User.objects.create_user(username=username, password="pw")
        OrganizationMembership.objects.create(
            user=user,
            organization=self.organization,
            role=role,
            permissions=permissions or [],
        )
        return user

    def vendor(self, name="Acme Supplies", **kwargs):
        kwargs.setdefault("payment_terms_days", 30)
        return Vendor.objects.create(organization=self.organization, company_name=name, **kwargs)

    def product(self, sku="SKU-1", unit_cost="10.0000", **kwargs):
        return Product.objects.create(
            organization=self.organization,
            sku=sku,
            name=kwargs.pop("name", f"Product {sku}"),
            unit_cost=Decimal(unit_cost),
            **kwargs,
        )

    def warehouse(self, code="MAIN"):
        return Warehouse.objects.create(organization=self.organization, code=code, name=code.title())

    def customer(self, name="Globex"):
        return Customer.objects.create(organization=self.organization, name=name)

    def service(self, code="SVC-1", **kwargs):
        kwargs.setdefault("name", "Installation")
        kwargs.setdefault("service_type", "installation")
        kwargs.setdefault("pricing_model", "hourly")
        kwargs.setdefault("standard_rate", Decimal("50.00"))
        return ServiceCatalog.objects.create(
            organization=self.organization, service_code=code, **kwargs
        )

    def bill(self, vendor=None, amounts=("100.00",), status="draft", bill_date=None, **kwargs):
        """
        Bill with one item per amount, totals refreshed.
        `status` is written straight to the row (no ledger posting).
        """
        bill = Bill.objects.create(
            organization=self.organization,
            vendor=vendor or self.vendor(),
            bill_date=bill_date or datetime.date(2025, 9, 1),
            payment_terms=kwargs.pop("payment_terms", "net_30"),
            **kwargs,
        )
        for idx, amount in enumerate(amounts, start=1):
            BillItem.objects.create(
                bill=bill,
                description=f"Item {idx}",
                quantity=Decimal("1"),
                unit_price=Decimal(amount),
                account=self.expense,
            )
        bill.recalc_totals()
        bill.status = status
        bill.save()
        return bill
