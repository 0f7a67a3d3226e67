from decimal import Decimal

from rest_framework import serializers

from ..models import (CAPA, Account, AuditLog, Bill, BillItem, BillTaxLine,
                      CapaTask, CostRevaluation, CostVariance, Customer,
                      Dashboard, DashboardWidget, DemandForecast, Discount,
                      JournalEntry, JournalLine, LandedCost,
                      LandedCostAllocation, NonConformanceReport,
                      OrganizationMembership, Payment, PaymentAllocation,
                      Product, ServiceBooking, ServiceCatalog, ServiceDelivery,
                      ServiceTimeEntry, StandardCost, User, Vendor, Warehouse)
from ..models.bill import BILL_STATUS_CHOICES, PAYMENT_TERMS_CHOICES
from ..models.costing import VARIANCE_TYPES
from ..models.landed_cost import ALLOCATION_METHODS
from ..models.payment import PAYMENT_METHODS

MONEY = {"max_digits": 18, "decimal_places": 2}
QTY = {"max_digits": 18, "decimal_places": 4}


# ---------- Tenant-scoped relations ----------
class TenantPrimaryKeyRelatedField(serializers.PrimaryKeyRelatedField):
    """Only accepts rows of the organization in the serializer context."""

    def get_queryset(self):
        qs = super().get_queryset()
        organization = self.context.get("organization")
        if organization is None:
            return qs.none()
        return qs.filter(organization=organization)


class MemberPrimaryKeyRelatedField(serializers.PrimaryKeyRelatedField):
    """Users holding an active membership in the context organization."""

    def get_queryset(self):
        organization = self.context.get("organization")
        if organization is None:
            return User.objects.none()
        return User.objects.members_of(organization)


class TenantModelSerializer(serializers.ModelSerializer):
    """Stamps the context organization on create."""

    def create(self, validated_data):
        validated_data["organization"] = self.context["organization"]
        return super().create(validated_data)


# ---------- Identity ----------
class MembershipSerializer(serializers.ModelSerializer):
    organization_slug = serializers.CharField(source="organization.slug", read_only=True)
    organization_name = serializers.CharField(source="organization.name", read_only=True)

    class Meta:
        model = OrganizationMembership
        fields = ["id", "organization", "organization_slug", "organization_name", "role", "permissions"]


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username", "email", "first_name", "last_name", "phone", "default_organization"]


# ---------- General ledger ----------
class AccountSerializer(TenantModelSerializer):
    parent = TenantPrimaryKeyRelatedField(queryset=Account.objects.all(), required=False, allow_null=True)
    normal_balance = serializers.CharField(read_only=True)

    class Meta:
        model = Account
        fields = [
            "id", "code", "name", "account_type", "description",
            "parent", "is_active", "normal_balance", "created_at",
        ]
        read_only_fields = ["created_at"]


class JournalLineSerializer(serializers.ModelSerializer):
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = JournalLine
        fields = ["id", "account", "account_code", "account_name", "description", "debit", "credit"]


class JournalEntrySerializer(serializers.ModelSerializer):
    lines = JournalLineSerializer(many=True, read_only=True)

    class Meta:
        model = JournalEntry
        fields = [
            "id", "entry_number", "date", "description", "status", "posted_at",
            "source_type", "source_id", "created_by", "lines",
        ]


class JournalLineInputSerializer(serializers.Serializer):
    account = TenantPrimaryKeyRelatedField(queryset=Account.objects.all())
    description = serializers.CharField(required=False, allow_blank=True, default="")
    debit = serializers.DecimalField(min_value=Decimal("0"), default=Decimal("0.00"), **MONEY)
    credit = serializers.DecimalField(min_value=Decimal("0"), default=Decimal("0.00"), **MONEY)

    def validate(self, attrs):
        if (attrs["debit"] > 0) == (attrs["credit"] > 0):
            raise serializers.ValidationError("Each line needs either a debit or a credit")
        return attrs


class JournalEntryInputSerializer(serializers.Serializer):
    date = serializers.DateField()
    description = serializers.CharField(required=False, allow_blank=True, default="")
    lines = JournalLineInputSerializer(many=True)

    def validate_lines(self, lines):
        if len(lines) < 2:
            raise serializers.ValidationError("A journal entry needs at least two lines")
        return lines


# ---------- Accounts payable ----------
class VendorSerializer(TenantModelSerializer):
    class Meta:
        model = Vendor
        fields = [
            "id", "vendor_number", "company_name", "contact_name", "email", "phone",
            "tax_id_number", "payment_terms_days", "is_active", "notes",
            "created_at", "updated_at",
        ]
        read_only_fields = ["vendor_number", "created_at", "updated_at"]

    def validate_payment_terms_days(self, value):
        if value > 365:
            raise serializers.ValidationError("Payment terms cannot exceed 365 days")
        return value


class BillTaxLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = BillTaxLine
        fields = [
            "id", "tax_type", "rate", "base_amount", "tax_amount",
            "is_compound", "compound_sequence", "is_withholding",
        ]


class BillItemSerializer(serializers.ModelSerializer):
    tax_lines = BillTaxLineSerializer(many=True, read_only=True)
    account_code = serializers.CharField(source="account.code", read_only=True)

    class Meta:
        model = BillItem
        fields = [
            "id", "description", "quantity", "unit_price", "account", "account_code",
            "tax_amount", "line_total", "tax_lines",
        ]


class BillSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.company_name", read_only=True)
    items = BillItemSerializer(many=True, read_only=True)
    journal_entry_number = serializers.CharField(
        source="journal_entry.entry_number", read_only=True, default=None
    )
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Bill
        fields = [
            "id", "bill_number", "vendor", "vendor_name", "vendor_reference",
            "bill_date", "payment_terms", "due_date", "status", "currency_code",
            "subtotal", "tax_amount", "total", "wht_amount", "amount_paid", "amount_due",
            "is_overdue", "notes", "journal_entry", "journal_entry_number",
            "created_by", "created_at", "updated_at", "items",
        ]


class BillListSerializer(BillSerializer):
    class Meta(BillSerializer.Meta):
        fields = [f for f in BillSerializer.Meta.fields if f != "items"]


class BillTaxLineInputSerializer(serializers.Serializer):
    tax_type = serializers.CharField(max_length=30)
    rate = serializers.DecimalField(max_digits=7, decimal_places=4, min_value=Decimal("0"))
    base_amount = serializers.DecimalField(required=False, allow_null=True, **MONEY)
    tax_amount = serializers.DecimalField(required=False, allow_null=True, min_value=Decimal("0"), **MONEY)
    is_compound = serializers.BooleanField(required=False, default=False)
    compound_sequence = serializers.IntegerField(required=False, default=0, min_value=0)
    is_withholding = serializers.BooleanField(required=False, default=False)


class BillItemInputSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)
    quantity = serializers.DecimalField(min_value=Decimal("0.0001"), **QTY)
    unit_price = serializers.DecimalField(min_value=Decimal("0"), **MONEY)
    account = TenantPrimaryKeyRelatedField(queryset=Account.objects.all())
    tax_amount = serializers.DecimalField(required=False, allow_null=True, min_value=Decimal("0"), **MONEY)
    tax_lines = BillTaxLineInputSerializer(many=True, required=False)


class BillInputSerializer(serializers.Serializer):
    vendor = TenantPrimaryKeyRelatedField(queryset=Vendor.objects.all())
    vendor_reference = serializers.CharField(required=False, allow_blank=True, max_length=100)
    bill_date = serializers.DateField()
    payment_terms = serializers.ChoiceField(choices=PAYMENT_TERMS_CHOICES, required=False)
    due_date = serializers.DateField(required=False, allow_null=True)
    currency_code = serializers.CharField(required=False, max_length=3)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = BillItemInputSerializer(many=True)

    def validate_items(self, items):
        if not items:
            raise serializers.ValidationError("A bill needs at least one item")
        return items

    def validate(self, attrs):
        due, bill_date = attrs.get("due_date"), attrs.get("bill_date")
        if due and bill_date and due < bill_date:
            raise serializers.ValidationError({"due_date": "Due date cannot be before the bill date"})
        return attrs


class BillStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=BILL_STATUS_CHOICES)


class PaymentAllocationSerializer(serializers.ModelSerializer):
    bill_number = serializers.CharField(source="bill.bill_number", read_only=True)

    class Meta:
        model = PaymentAllocation
        fields = ["id", "bill", "bill_number", "amount"]


class PaymentSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.company_name", read_only=True)
    bank_account_code = serializers.CharField(source="bank_account.code", read_only=True)
    allocations = PaymentAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id", "payment_number", "vendor", "vendor_name", "payment_date", "amount",
            "payment_method", "bank_account", "bank_account_code", "reference_number",
            "notes", "journal_entry", "created_by", "created_at", "allocations",
        ]


class PaymentAllocationInputSerializer(serializers.Serializer):
    bill = TenantPrimaryKeyRelatedField(queryset=Bill.objects.all())
    amount = serializers.DecimalField(min_value=Decimal("0.01"), **MONEY)


class PaymentInputSerializer(serializers.Serializer):
    vendor = TenantPrimaryKeyRelatedField(queryset=Vendor.objects.all())
    payment_date = serializers.DateField()
    amount = serializers.DecimalField(min_value=Decimal("0.01"), **MONEY)
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHODS)
    bank_account = TenantPrimaryKeyRelatedField(queryset=Account.objects.filter(account_type="asset"))
    reference_number = serializers.CharField(required=False, allow_blank=True, max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True)
    allocations = PaymentAllocationInputSerializer(many=True)

    def validate_allocations(self, allocations):
        if not allocations:
            raise serializers.ValidationError("At least one bill allocation is required")
        return allocations


# ---------- Inventory references ----------
class ProductSerializer(TenantModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id", "sku", "name", "description", "unit_cost", "quantity_on_hand",
            "weight", "volume", "is_active", "created_at",
        ]
        read_only_fields = ["created_at"]


class WarehouseSerializer(TenantModelSerializer):
    class Meta:
        model = Warehouse
        fields = ["id", "code", "name", "is_active"]


class CustomerSerializer(TenantModelSerializer):
    class Meta:
        model = Customer
        fields = ["id", "name", "email", "phone", "is_active", "created_at"]
        read_only_fields = ["created_at"]


# ---------- Costing ----------
class StandardCostSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source="product.sku", read_only=True)

    class Meta:
        model = StandardCost
        fields = [
            "id", "product", "sku", "costing_method", "material_cost", "labor_cost",
            "overhead_cost", "total_cost", "effective_from", "effective_to",
            "is_active", "notes", "created_by", "created_at",
        ]
        read_only_fields = ["product", "total_cost", "created_by", "created_at"]

    def validate(self, attrs):
        start, end = attrs.get("effective_from"), attrs.get("effective_to")
        if start and end and end < start:
            raise serializers.ValidationError({"effective_to": "effective_to must be on or after effective_from"})
        return attrs


class CostRevaluationSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source="product.sku", read_only=True)
    journal_entry_number = serializers.CharField(
        source="journal_entry.entry_number", read_only=True, default=None
    )

    class Meta:
        model = CostRevaluation
        fields = [
            "id", "revaluation_number", "product", "sku", "warehouse", "revaluation_date",
            "reason", "old_unit_cost", "new_unit_cost", "quantity", "value_difference",
            "status", "journal_entry", "journal_entry_number", "approved_by", "approved_at",
            "notes", "created_by", "created_at",
        ]


class RevaluationPreviewSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    new_unit_cost = serializers.DecimalField(**QTY)
    quantity = serializers.DecimalField(**QTY)
    old_unit_cost = serializers.DecimalField(required=False, allow_null=True, **QTY)


class RevaluationInputSerializer(RevaluationPreviewSerializer):
    new_unit_cost = serializers.DecimalField(min_value=Decimal("0"), **QTY)
    quantity = serializers.DecimalField(min_value=Decimal("0.0001"), **QTY)
    warehouse = TenantPrimaryKeyRelatedField(
        queryset=Warehouse.objects.all(), required=False, allow_null=True
    )
    revaluation_date = serializers.DateField(required=False)
    reason = serializers.CharField(max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True)
    auto_approve = serializers.BooleanField(required=False, default=False)


class CostVarianceSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source="product.sku", read_only=True)

    class Meta:
        model = CostVariance
        fields = [
            "id", "product", "sku", "standard_cost", "variance_type", "variance_date",
            "quantity", "standard_material", "standard_labor", "standard_overhead",
            "actual_material", "actual_labor", "actual_overhead",
            "material_variance", "labor_variance", "overhead_variance",
            "total_variance", "is_favorable", "reference", "notes", "created_at",
        ]


class VarianceInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    standard_cost = TenantPrimaryKeyRelatedField(
        queryset=StandardCost.objects.all(), required=False, allow_null=True
    )
    variance_type = serializers.ChoiceField(choices=VARIANCE_TYPES)
    variance_date = serializers.DateField(required=False)
    quantity = serializers.DecimalField(min_value=Decimal("0.0001"), **QTY)
    standard_material = serializers.DecimalField(required=False, allow_null=True, **QTY)
    standard_labor = serializers.DecimalField(required=False, allow_null=True, **QTY)
    standard_overhead = serializers.DecimalField(required=False, allow_null=True, **QTY)
    actual_material = serializers.DecimalField(required=False, default=Decimal("0"), **QTY)
    actual_labor = serializers.DecimalField(required=False, default=Decimal("0"), **QTY)
    actual_overhead = serializers.DecimalField(required=False, default=Decimal("0"), **QTY)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True)


class LandedCostAllocationSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source="product.sku", read_only=True)

    class Meta:
        model = LandedCostAllocation
        fields = [
            "id", "product", "sku", "quantity", "unit_cost", "weight", "volume",
            "allocated_amount", "new_unit_cost", "cost_increase_percent",
        ]


class LandedCostSerializer(serializers.ModelSerializer):
    allocations = LandedCostAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = LandedCost
        fields = [
            "id", "landed_cost_number", "reference", "cost_date", "allocation_method",
            "freight", "insurance", "customs_duty", "handling", "clearing_agent",
            "storage", "other", "currency_code", "exchange_rate", "total_cost",
            "status", "journal_entry", "notes", "created_by", "created_at", "allocations",
        ]


class LandedCostItemInputSerializer(serializers.Serializer):
    product = TenantPrimaryKeyRelatedField(queryset=Product.objects.all())
    quantity = serializers.DecimalField(min_value=Decimal("0.0001"), **QTY)
    unit_cost = serializers.DecimalField(required=False, allow_null=True, min_value=Decimal("0"), **QTY)
    weight = serializers.DecimalField(required=False, allow_null=True, min_value=Decimal("0"), **QTY)
    volume = serializers.DecimalField(required=False, allow_null=True, min_value=Decimal("0"), **QTY)
    allocated_amount = serializers.DecimalField(required=False, allow_null=True, **MONEY)


class LandedCostInputSerializer(serializers.Serializer):
    reference = serializers.CharField(required=False, allow_blank=True, max_length=100)
    cost_date = serializers.DateField(required=False)
    allocation_method = serializers.ChoiceField(choices=ALLOCATION_METHODS)
    freight = serializers.DecimalField(required=False, min_value=Decimal("0"), **MONEY)
    insurance = serializers.DecimalField(required=False, min_value=Decimal("0"), **MONEY)
    customs_duty = serializers.DecimalField(required=False, min_value=Decimal("0"), **MONEY)
    handling = serializers.DecimalField(required=False, min_value=Decimal("0"), **MONEY)
    clearing_agent = serializers.DecimalField(required=False, min_value=Decimal("0"), **MONEY)
    storage = serializers.DecimalField(required=False, min_value=Decimal("0"), **MONEY)
    other = serializers.DecimalField(required=False, min_value=Decimal("0"), **MONEY)
    currency_code = serializers.CharField(required=False, max_length=3)
    exchange_rate = serializers.DecimalField(
        required=False, max_digits=18, decimal_places=6, min_value=Decimal("0.000001")
    )
    notes = serializers.CharField(required=False, allow_blank=True)
    items = LandedCostItemInputSerializer(many=True)

    def validate_items(self, items):
        if not items:
            raise serializers.ValidationError("At least one item is required")
        return items


# ---------- Quality ----------
class NonConformanceReportSerializer(TenantModelSerializer):
    product = TenantPrimaryKeyRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)
    vendor = TenantPrimaryKeyRelatedField(queryset=Vendor.objects.all(), required=False, allow_null=True)
    customer = TenantPrimaryKeyRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)
    assigned_to = MemberPrimaryKeyRelatedField(required=False, allow_null=True)
    capa_id = serializers.SerializerMethodField()

    class Meta:
        model = NonConformanceReport
        fields = [
            "id", "ncr_number", "title", "description", "source", "severity", "status",
            "product", "vendor", "customer", "lot_number", "quantity", "detected_date",
            "detected_by", "root_cause", "containment_action", "assigned_to",
            "target_close_date", "closed_at", "closed_by", "notes", "capa_id",
            "created_at", "updated_at",
        ]
        read_only_fields = [
            "ncr_number", "detected_by", "closed_at", "closed_by", "created_at", "updated_at",
        ]

    def get_capa_id(self, obj):
        capa = CAPA.objects.filter(ncr=obj).only("id").first()
        return capa.pk if capa else None


class CapaTaskSerializer(serializers.ModelSerializer):
    capa = serializers.PrimaryKeyRelatedField(queryset=CAPA.objects.all())
    assigned_to = MemberPrimaryKeyRelatedField(required=False, allow_null=True)

    class Meta:
        model = CapaTask
        fields = [
            "id", "capa", "task_number", "title", "description", "assigned_to",
            "due_date", "status", "completed_at", "created_at",
        ]
        read_only_fields = ["task_number", "completed_at", "created_at"]

    def validate_capa(self, capa):
        if capa.organization_id != self.context["organization"].pk:
            raise serializers.ValidationError("CAPA not found")
        return capa


class CAPASerializer(TenantModelSerializer):
    ncr = serializers.PrimaryKeyRelatedField(read_only=True)
    ncr_number = serializers.CharField(source="ncr.ncr_number", read_only=True, default=None)
    assigned_to = MemberPrimaryKeyRelatedField(required=False, allow_null=True)
    is_overdue = serializers.BooleanField(read_only=True)
    task_count = serializers.SerializerMethodField()

    class Meta:
        model = CAPA
        fields = [
            "id", "capa_number", "title", "description", "capa_type", "source",
            "priority", "risk_level", "status", "ncr", "ncr_number", "root_cause",
            "corrective_action", "preventive_action", "assigned_to", "due_date",
            "verified_by", "verified_at", "verification_notes", "closed_by",
            "closure_date", "created_by", "created_at", "updated_at",
            "is_overdue", "task_count",
        ]
        read_only_fields = [
            "capa_number", "status", "verified_by", "verified_at", "closed_by",
            "closure_date", "created_by", "created_at", "updated_at",
        ]

    def get_task_count(self, obj):
        return obj.tasks.count()


class CAPADetailSerializer(CAPASerializer):
    tasks = CapaTaskSerializer(many=True, read_only=True)

    class Meta(CAPASerializer.Meta):
        fields = CAPASerializer.Meta.fields + ["tasks"]


# ---------- Reporting ----------
class DashboardWidgetSerializer(serializers.ModelSerializer):
    class Meta:
        model = DashboardWidget
        fields = [
            "id", "dashboard", "widget_type", "title", "position", "config",
            "refresh_interval", "created_at",
        ]
        read_only_fields = ["dashboard", "created_at"]

    def validate_refresh_interval(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError("Refresh interval must be positive")
        return value


class DashboardSerializer(serializers.ModelSerializer):
    widget_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Dashboard
        fields = [
            "id", "name", "description", "layout", "is_default", "is_public",
            "created_by", "created_at", "updated_at", "widget_count",
        ]
        read_only_fields = ["created_by", "created_at", "updated_at"]


class DashboardDetailSerializer(DashboardSerializer):
    widgets = DashboardWidgetSerializer(many=True, read_only=True)

    class Meta(DashboardSerializer.Meta):
        fields = [f for f in DashboardSerializer.Meta.fields if f != "widget_count"] + ["widgets"]


# ---------- Discounts ----------
class DiscountSerializer(serializers.ModelSerializer):
    class Meta:
        model = Discount
        fields = [
            "id", "code", "name", "description", "discount_type", "value",
            "min_purchase", "max_discount", "valid_from", "valid_to",
            "usage_limit", "usage_count", "is_active", "created_at", "updated_at",
        ]
        read_only_fields = ["usage_count", "created_at", "updated_at"]

    def validate_code(self, value):
        value = value.strip().upper()
        qs = Discount.objects.for_organization(self.context["organization"]).filter(code=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError(f"Discount code {value} already exists")
        return value

    def validate(self, attrs):
        value = attrs.get("value", getattr(self.instance, "value", None))
        kind = attrs.get("discount_type", getattr(self.instance, "discount_type", None))
        if value is not None:
            if value <= 0:
                raise serializers.ValidationError({"value": "Discount value must be greater than 0"})
            if kind == "percentage" and value > 100:
                raise serializers.ValidationError({"value": "Percentage discount cannot exceed 100"})
        start = attrs.get("valid_from", getattr(self.instance, "valid_from", None))
        end = attrs.get("valid_to", getattr(self.instance, "valid_to", None))
        if start and end and end < start:
            raise serializers.ValidationError({"valid_to": "valid_to must be on or after valid_from"})
        return attrs


# ---------- Planning ----------
class DemandForecastSerializer(TenantModelSerializer):
    product = TenantPrimaryKeyRelatedField(queryset=Product.objects.all())
    warehouse = TenantPrimaryKeyRelatedField(
        queryset=Warehouse.objects.all(), required=False, allow_null=True
    )
    sku = serializers.CharField(source="product.sku", read_only=True)

    class Meta:
        model = DemandForecast
        fields = [
            "id", "product", "sku", "warehouse", "period_start", "period_end",
            "forecast_method", "forecast_quantity", "confidence_lower", "confidence_upper",
            "actual_demand", "accuracy", "notes", "created_at", "updated_at",
        ]
        read_only_fields = ["accuracy", "created_at", "updated_at"]

    def validate(self, attrs):
        start = attrs.get("period_start", getattr(self.instance, "period_start", None))
        end = attrs.get("period_end", getattr(self.instance, "period_end", None))
        if start and end and end < start:
            raise serializers.ValidationError({"period_end": "period_end must be on or after period_start"})
        qty = attrs.get("forecast_quantity")
        if qty is not None and qty < 0:
            raise serializers.ValidationError({"forecast_quantity": "Forecast quantity cannot be negative"})
        return attrs


# ---------- Services ----------
class ServiceCatalogSerializer(TenantModelSerializer):
    class Meta:
        model = ServiceCatalog
        fields = [
            "id", "service_code", "name", "description", "service_type", "pricing_model",
            "standard_rate", "standard_duration_hours", "is_billable", "is_active",
            "auto_scheduling", "created_at",
        ]
        read_only_fields = ["created_at"]


class ServiceBookingSerializer(serializers.ModelSerializer):
    service = TenantPrimaryKeyRelatedField(queryset=ServiceCatalog.objects.all())
    customer = TenantPrimaryKeyRelatedField(queryset=Customer.objects.all())
    service_name = serializers.CharField(source="service.name", read_only=True)
    customer_name = serializers.CharField(source="customer.name", read_only=True)

    class Meta:
        model = ServiceBooking
        fields = [
            "id", "booking_number", "service", "service_name", "customer", "customer_name",
            "contact_name", "contact_email", "contact_phone", "requested_date", "priority",
            "estimated_hours", "quoted_price", "approved_price", "approved_by", "approved_at",
            "status", "notes", "created_by", "created_at",
        ]
        read_only_fields = [
            "booking_number", "approved_price", "approved_by", "approved_at",
            "status", "created_by", "created_at",
        ]


class ServiceDeliverySerializer(serializers.ModelSerializer):
    service = TenantPrimaryKeyRelatedField(
        queryset=ServiceCatalog.objects.all(), required=False, allow_null=True
    )
    customer = TenantPrimaryKeyRelatedField(
        queryset=Customer.objects.all(), required=False, allow_null=True
    )
    booking = TenantPrimaryKeyRelatedField(
        queryset=ServiceBooking.objects.all(), required=False, allow_null=True
    )
    service_name = serializers.CharField(source="service.name", read_only=True)

    class Meta:
        model = ServiceDelivery
        fields = [
            "id", "delivery_number", "service", "service_name", "customer", "booking",
            "status", "planned_start", "planned_end", "actual_start", "actual_end",
            "estimated_hours", "actual_hours", "progress", "notes", "created_at",
        ]
        read_only_fields = [
            "delivery_number", "actual_start", "actual_end", "actual_hours", "created_at",
        ]

    def validate_progress(self, value):
        if not 0 <= value <= 100:
            raise serializers.ValidationError("Progress must be between 0 and 100")
        return value


class ServiceTimeEntrySerializer(serializers.ModelSerializer):
    delivery_number = serializers.CharField(source="delivery.delivery_number", read_only=True)

    class Meta:
        model = ServiceTimeEntry
        fields = [
            "id", "delivery", "delivery_number", "user", "entry_date", "duration_hours",
            "hourly_rate", "is_billable", "total_amount", "description", "created_at",
        ]
        read_only_fields = ["delivery", "user", "total_amount", "created_at"]

    def validate_duration_hours(self, value):
        if value <= 0:
            raise serializers.ValidationError("Duration must be greater than 0")
        return value


class ServiceTimeEntryInputSerializer(ServiceTimeEntrySerializer):
    delivery = TenantPrimaryKeyRelatedField(queryset=ServiceDelivery.objects.all())
    hourly_rate = serializers.DecimalField(required=False, allow_null=True, min_value=Decimal("0"), **MONEY)

    class Meta(ServiceTimeEntrySerializer.Meta):
        read_only_fields = ["user", "total_amount", "created_at"]


# ---------- Security ----------
class AuditLogSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            "id", "user", "username", "action", "object_type", "object_id",
            "changes", "created_at",
        ]
