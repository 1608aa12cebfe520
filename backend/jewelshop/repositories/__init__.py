from .base import ShopScopedRepository
from .catalog import CustomerRepository, SupplierRepository, ProductRepository
from .stock import StockItemRepository
from .rates import RateMasterRepository
from .orders import PurchaseOrderRepository, SalesOrderRepository
from .emi import EmiPaymentRepository
from .finance import TransactionRepository, AuditLogRepository

__all__ = [
    'ShopScopedRepository',
    'CustomerRepository', 'SupplierRepository', 'ProductRepository',
    'StockItemRepository',
    'RateMasterRepository',
    'PurchaseOrderRepository', 'SalesOrderRepository',
    'EmiPaymentRepository',
    'TransactionRepository', 'AuditLogRepository',
]
