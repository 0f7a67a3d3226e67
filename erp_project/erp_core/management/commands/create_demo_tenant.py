from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils.text import slugify

from erp_core.models import (Account, Customer, Organization,
                             OrganizationMembership, Product, User, Vendor,
                             Warehouse)

# Chart of accounts every automatic posting relies on (see ERP_GL_ACCOUNTS)
DEMO_ACCOUNTS = [
    ("1000", "Bank", "asset"),
    ("1300", "Inventory", "asset"),
    ("2000", "Accounts Payable", "liability"),
    ("2150", "Withholding Tax Payable", "liability"),
    ("2300", "Landed Cost Clearing", "liability"),
    ("3000", "Owner's Equity", "equity"),
    ("4900", "Inventory Revaluation Gain", "revenue"),
    ("5000", "Cost of Goods Sold", "expense"),
    ("6000", "Operating Expenses", "expense"),
    ("6900", "Inventory Revaluation Loss", "expense"),
]


class Command(BaseCommand):
    help = "Create a demo organization, an admin user and a starter chart of accounts."

    def add_arguments(self, parser):
        parser.add_argument(
            "--org-name", default="Demo Company", help="Name of the demo organization."
        )
        parser.add_argument("--username", default="demo", help="Username for the demo admin.")
        parser.add_argument("--password", default="demo123", help="Password for the demo admin.")

    # Generate unique slug for the organization
    def unique_slug(self, name, max_tries=100):
        base = slugify(name) or "organization"
        slug = base
        i = 1
        # If plain slug is taken, append -1, -2, etc.
        while Organization.objects.filter(slug=slug).exists():
            slug = f"{base}-{i}"
            i += 1
            if i > max_tries:
                raise CommandError("Couldn't generate unique slug")
        return slug

    @transaction.atomic
    def handle(self, *args, **options):
        org_name = options["org_name"]
        username = options["username"]
        password = options["password"]

        # 1. Organization
        organization = Organization.objects.filter(name=org_name).first()
        if organization is None:
            organization = Organization.objects.create(
                name=org_name, slug=self.unique_slug(org_name)
            )
        self.stdout.write(
            self.style.SUCCESS(f"Organization: {organization} (slug={organization.slug})")
        )

        # 2. Admin user + membership
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com"},
        )
        if created:
            user.set_password(password)
        if user.default_organization_id is None:
            user.default_organization = organization
        user.save()
        OrganizationMembership.objects.get_or_create(
            user=user, organization=organization, defaults={"role": "admin"}
        )
        self.stdout.write(self.style.SUCCESS(f"Admin user: {user.username} (pw={password})"))

        # 3. Chart of accounts
        for code, name, account_type in DEMO_ACCOUNTS:
            Account.objects.get_or_create(
                organization=organization,
                code=code,
                defaults={"name": name, "account_type": account_type},
            )
        self.stdout.write(self.style.SUCCESS(f"Chart of accounts: {len(DEMO_ACCOUNTS)} accounts"))

        # 4. Reference data to try the API with
        Vendor.objects.get_or_create(
            organization=organization,
            company_name="Acme Supplies",
            defaults={"email": "ap@acme.example.com", "payment_terms_days": 30},
        )
        Product.objects.get_or_create(
            organization=organization,
            sku="WIDGET-1",
            defaults={
                "name": "Widget",
                "unit_cost": Decimal("10.0000"),
                "quantity_on_hand": Decimal("100"),
                "weight": Decimal("1.5"),
            },
        )
        Warehouse.objects.get_or_create(
            organization=organization, code="MAIN", defaults={"name": "Main warehouse"}
        )
        Customer.objects.get_or_create(
            organization=organization, name="Demo Customer",
            defaults={"email": "buyer@example.com"},
        )
        self.stdout.write(self.style.SUCCESS("Demo tenant setup complete!"))
