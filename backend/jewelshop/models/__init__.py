from .shops import Shop
from .auth import User, SessionToken
from .catalog import Customer, Supplier, Product
from .inventory import RateMaster, StockItem
from .purchasing import PurchaseOrder, PurchaseOrderItem, PurchasePayment
from .sales import SalesOrder, SalesOrderLine, SalesPayment
from .emi import EmiPayment, EmiInstallment
from .finance import Transaction
from .audit import AuditLog

__all__ = [
    'Shop',
    'User', 'SessionToken',
    'Customer', 'Supplier', 'Product',
    'RateMaster', 'StockItem',
    'PurchaseOrder', 'PurchaseOrderItem', 'PurchasePayment',
    'SalesOrder', 'SalesOrderLine', 'SalesPayment',
    'EmiPayment', 'EmiInstallment',
    'Transaction',
    'AuditLog',
]
