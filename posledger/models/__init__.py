from posledger.models.billing import BillingPDF, Estimate, Invoice, PaymentStatus
from posledger.models.inventory import Archive, ChangeAction, Order, OrderStatus, Product, ProductChangeLog
from posledger.models.sales import Payment, Sale, SaleItem
from posledger.models.user import User, UserRole

__all__ = [
    "Archive",
    "BillingPDF",
    "ChangeAction",
    "Estimate",
    "Invoice",
    "Order",
    "OrderStatus",
    "Payment",
    "PaymentStatus",
    "Product",
    "ProductChangeLog",
    "Sale",
    "SaleItem",
    "User",
    "UserRole",
]
