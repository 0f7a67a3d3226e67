from .actions import approve_bills, post_journal_entries
from .costing import (CostRevaluationAdmin, CostVarianceAdmin, CustomerAdmin,
                      LandedCostAdmin, ProductAdmin, StandardCostAdmin,
                      WarehouseAdmin)
from .inlines import (BillItemInline, CapaTaskInline, DashboardWidgetInline,
                      JournalLineInline, LandedCostAllocationInline,
                      PaymentAllocationInline)
from .ledger import AccountAdmin, AuditLogAdmin, JournalEntryAdmin
from .membership import (OrganizationAdmin, OrganizationMembershipAdmin,
                         UserAdmin)
from .mixins import TenantAdminMixin
from .operations import (DashboardAdmin, DemandForecastAdmin, DiscountAdmin,
                         ServiceBookingAdmin, ServiceCatalogAdmin,
                         ServiceDeliveryAdmin, ServiceTimeEntryAdmin)
from .payables import BillAdmin, PaymentAdmin, VendorAdmin
from .quality import CAPAAdmin, NonConformanceReportAdmin
from .readonly import ReadOnlyAdmin
