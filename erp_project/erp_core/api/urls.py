from django.urls import include, path

from .views import (auth, costing, ledger, masterdata, payables, planning,
                    quality, reporting, security, services)

# /api/orgs/<org_slug>/...
org_patterns = [
    # General ledger
    path("chart-of-accounts/", ledger.account_list_create, name="account-list-create"),
    path("chart-of-accounts/<int:pk>/", ledger.account_detail, name="account-detail"),
    path("journal-entries/", ledger.journal_entry_list_create, name="journal-entry-list-create"),

    # Accounts payable
    path("vendors/", payables.vendor_list_create, name="vendor-list-create"),
    path("vendors/<int:pk>/", payables.vendor_detail, name="vendor-detail"),
    path("bills/", payables.bill_list_create, name="bill-list-create"),
    path("bills/<int:pk>/", payables.bill_detail, name="bill-detail"),
    path("bills/<int:pk>/void/", payables.bill_void, name="bill-void"),
    path("payments/", payables.payment_list_create, name="payment-list-create"),
    path("payments/<int:pk>/", payables.payment_detail, name="payment-detail"),

    # Reference data
    path("inventory/products/", masterdata.product_list_create, name="product-list-create"),
    path("inventory/warehouses/", masterdata.warehouse_list_create, name="warehouse-list-create"),
    path("customers/", masterdata.customer_list_create, name="customer-list-create"),
    path("mdm/discounts/", masterdata.discount_list_create, name="discount-list-create"),
    path("mdm/discounts/<int:pk>/", masterdata.discount_detail, name="discount-detail"),
]

# /api/<org_slug>/...
module_patterns = [
    # Costing
    path("costing/standard-costs/", costing.standard_cost_list_create, name="standard-cost-list-create"),
    path("costing/revaluations/", costing.revaluation_list_create, name="revaluation-list-create"),
    path("costing/revaluations/preview/", costing.revaluation_preview, name="revaluation-preview"),
    path("costing/revaluations/<int:pk>/approve/", costing.revaluation_approve, name="revaluation-approve"),
    path("costing/revaluations/<int:pk>/post/", costing.revaluation_post, name="revaluation-post"),
    path("costing/variances/", costing.variance_list_create, name="variance-list-create"),
    path("costing/landed-costs/", costing.landed_cost_list_create, name="landed-cost-list-create"),
    path("costing/landed-costs/<int:pk>/", costing.landed_cost_detail, name="landed-cost-detail"),
    path("costing/landed-costs/<int:pk>/post/", costing.landed_cost_post, name="landed-cost-post"),

    # Quality
    path("quality/ncr/", quality.ncr_list_create, name="ncr-list-create"),
    path("quality/ncr/<int:pk>/", quality.ncr_detail, name="ncr-detail"),
    path("quality/capa/", quality.capa_list_create, name="capa-list-create"),
    path("quality/capa/tasks/", quality.capa_task_list_create, name="capa-task-list-create"),
    path("quality/capa/tasks/<int:pk>/", quality.capa_task_detail, name="capa-task-detail"),
    path("quality/capa/<int:pk>/", quality.capa_detail, name="capa-detail"),

    # Reporting
    path("reporting/dashboards/", reporting.dashboard_list_create, name="dashboard-list-create"),
    path("reporting/dashboards/<int:pk>/", reporting.dashboard_detail, name="dashboard-detail"),
    path("reporting/dashboards/<int:pk>/widgets/", reporting.widget_list_create, name="widget-list-create"),

    # Planning
    path("planning/forecasts/", planning.forecast_list_create, name="forecast-list-create"),
    path("planning/forecasts/<int:pk>/", planning.forecast_detail, name="forecast-detail"),

    # Services
    path("services/catalog/", services.catalog_list_create, name="service-catalog-list-create"),
    path("services/bookings/", services.booking_list_create, name="booking-list-create"),
    path("services/bookings/<int:pk>/approve/", services.booking_approve, name="booking-approve"),
    path("services/bookings/<int:pk>/cancel/", services.booking_cancel, name="booking-cancel"),
    path("services/deliveries/", services.delivery_list_create, name="delivery-list-create"),
    path("services/deliveries/<int:pk>/start/", services.delivery_start, name="delivery-start"),
    path("services/deliveries/<int:pk>/complete/", services.delivery_complete, name="delivery-complete"),
    path("services/time-entries/", services.time_entry_list_create, name="time-entry-list-create"),
    path("services/metrics/", services.service_metrics, name="service-metrics"),

    # Security
    path("security/audit-logs/", security.audit_log_list, name="audit-log-list"),
]

urlpatterns = [
    path("auth/me/", auth.me, name="auth-me"),
    path("orgs/<slug:org_slug>/", include(org_patterns)),
    path("<slug:org_slug>/", include(module_patterns)),
]
