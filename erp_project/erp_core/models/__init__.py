from .account import Account
from .auditlog import AuditLog
from .bill import Bill, BillItem, BillTaxLine
from .costing import CostRevaluation, CostVariance, StandardCost
from .customer import Customer
from .discount import Discount
from .forecast import DemandForecast
from .inventory import Product, Warehouse
from .journal import JournalEntry, JournalLine
from .landed_cost import LandedCost, LandedCostAllocation
from .organization import Organization, OrganizationMembership, User
from .payment import Payment, PaymentAllocation
from .quality import CAPA, CapaTask, NonConformanceReport
from .reporting import Dashboard, DashboardWidget
from .service import (ServiceBooking, ServiceCatalog, ServiceDelivery,
                      ServiceTimeEntry)
from .vendor import Vendor
