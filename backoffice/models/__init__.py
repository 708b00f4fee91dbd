from backoffice.models.driver import Driver
from backoffice.models.food_category import FoodCategory
from backoffice.models.company import Company
from backoffice.models.customer import Customer, CustomerPackage
from backoffice.models.daily_order import DailyOrder, OrderItem
from backoffice.models.bill import Bill, BillItem, BillCounter
from backoffice.models.payment import Payment, PaymentAllocation
from backoffice.models.payment_audit import PaymentAudit, PaymentAuditEntry

__all__ = [
    "Driver",
    "FoodCategory",
    "Company",
    "Customer",
    "CustomerPackage",
    "DailyOrder",
    "OrderItem",
    "Bill",
    "BillItem",
    "BillCounter",
    "Payment",
    "PaymentAllocation",
    "PaymentAudit",
    "PaymentAuditEntry",
]
