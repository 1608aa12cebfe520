# Overview: Service-layer operations for customers, suppliers, and products.

from __future__ import annotations

from ..errors import ConflictError
from ..models import Customer, Product, Supplier
from ..models.purchasing import PO_TERMINAL
from ..models.inventory import STOCK_AVAILABLE, STOCK_RESERVED
from ..models.sales import SO_PENDING
from ..repositories.catalog import CustomerRepository, ProductRepository, SupplierRepository
from ..repositories.orders import PurchaseOrderRepository, SalesOrderRepository
from ..repositories.stock import StockItemRepository
from ..tenancy import TenantContext
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_customer,
    enforce_rules_product,
    enforce_rules_supplier,
    validate_payload,
)
from . import audit_service
from .concurrency import unit_of_work


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "phone", "email", "address", "city", "gstin",
        "customer_type", "credit_limit_paise", "notes",
    },
    required_on_create={"name", "phone"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "phone", "email", "gstin", "address", "is_active"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "barcode", "category", "description", "metal_type", "purity",
        "gross_weight_mg", "net_weight_mg", "wastage_bps",
        "making_charges_paise", "stone_value_paise",
        "huid", "tag_number", "collection_name", "supplier_id",
    },
    required_on_create={"name", "barcode", "metal_type", "purity", "net_weight_mg"},
)


# ----------------------------------------------------------------------
# Customers
# ----------------------------------------------------------------------

def create_customer(context: TenantContext, payload: dict) -> Customer:
    repo = CustomerRepository(context)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)

    def _op():
        if repo.find_by_phone(patch["phone"]):
            raise ConflictError("A customer with this phone number already exists")
        customer = repo.create(**patch)
        audit_service.log_create(context, "CUSTOMERS", customer)
        return customer

    return unit_of_work(_op)


def update_customer(context: TenantContext, customer_id: int, payload: dict) -> Customer:
    repo = CustomerRepository(context)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_customer(patch)

    def _op():
        customer = repo.verify_ownership(customer_id, for_update=True)
        if "phone" in patch and patch["phone"] != customer.phone:
            clash = repo.find_by_phone(patch["phone"])
            if clash and clash.id != customer.id:
                raise ConflictError("A customer with this phone number already exists")
        before = customer.to_dict()
        repo.update(customer.id, **patch)
        audit_service.log_update(context, "CUSTOMERS", customer, before)
        return customer

    return unit_of_work(_op)


def delete_customer(context: TenantContext, customer_id: int) -> Customer:
    repo = CustomerRepository(context)
    orders = SalesOrderRepository(context)

    def _op():
        customer = repo.verify_ownership(customer_id, for_update=True)
        if orders.count({"customer_id": customer.id, "status": SO_PENDING}):
            raise ConflictError("Customer has pending sales orders")
        before = customer.to_dict()
        repo.soft_delete(customer.id)
        audit_service.log_delete(context, "CUSTOMERS", customer, before)
        return customer

    return unit_of_work(_op)


# ----------------------------------------------------------------------
# Suppliers
# ----------------------------------------------------------------------

def create_supplier(context: TenantContext, payload: dict) -> Supplier:
    repo = SupplierRepository(context)
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    enforce_rules_supplier(patch)

    def _op():
        if repo.find_by_name(patch["name"]):
            raise ConflictError("A supplier with this name already exists")
        supplier = repo.create(**patch)
        audit_service.log_create(context, "SUPPLIERS", supplier)
        return supplier

    return unit_of_work(_op)


def update_supplier(context: TenantContext, supplier_id: int, payload: dict) -> Supplier:
    repo = SupplierRepository(context)
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    enforce_rules_supplier(patch)

    def _op():
        supplier = repo.verify_ownership(supplier_id, for_update=True)
        if "name" in patch and patch["name"] != supplier.name:
            clash = repo.find_by_name(patch["name"])
            if clash and clash.id != supplier.id:
                raise ConflictError("A supplier with this name already exists")
        before = supplier.to_dict()
        repo.update(supplier.id, **patch)
        audit_service.log_update(context, "SUPPLIERS", supplier, before)
        return supplier

    return unit_of_work(_op)


def delete_supplier(context: TenantContext, supplier_id: int) -> Supplier:
    repo = SupplierRepository(context)
    purchase_orders = PurchaseOrderRepository(context)

    def _op():
        supplier = repo.verify_ownership(supplier_id, for_update=True)
        open_orders = [
            po for po in purchase_orders.query().filter_by(supplier_id=supplier.id).all()
            if po.status not in PO_TERMINAL
        ]
        if open_orders:
            raise ConflictError("Supplier has open purchase orders")
        before = supplier.to_dict()
        repo.soft_delete(supplier.id)
        audit_service.log_delete(context, "SUPPLIERS", supplier, before)
        return supplier

    return unit_of_work(_op)


def supplier_purchase_orders(context: TenantContext, supplier_id: int, page_request):
    SupplierRepository(context).verify_ownership(supplier_id)
    return PurchaseOrderRepository(context).list({"supplier_id": supplier_id}, page_request)


# ----------------------------------------------------------------------
# Products
# ----------------------------------------------------------------------

def _check_supplier(context: TenantContext, patch: dict) -> None:
    if patch.get("supplier_id") is not None:
        SupplierRepository(context).verify_ownership(patch["supplier_id"])


def create_product(context: TenantContext, payload: dict) -> Product:
    repo = ProductRepository(context)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    def _op():
        _check_supplier(context, patch)
        if repo.find_by_barcode(patch["barcode"]):
            raise ConflictError("A product with this barcode already exists")
        product = repo.create(**patch)
        audit_service.log_create(context, "PRODUCTS", product)
        return product

    return unit_of_work(_op)


def update_product(context: TenantContext, product_id: int, payload: dict) -> Product:
    repo = ProductRepository(context)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)

    def _op():
        product = repo.verify_ownership(product_id, for_update=True)
        enforce_rules_product(patch, existing=product)
        _check_supplier(context, patch)
        if "barcode" in patch and patch["barcode"] != product.barcode:
            clash = repo.find_by_barcode(patch["barcode"])
            if clash and clash.id != product.id:
                raise ConflictError("A product with this barcode already exists")
        before = product.to_dict()
        repo.update(product.id, **patch)
        audit_service.log_update(context, "PRODUCTS", product, before)
        return product

    return unit_of_work(_op)


def delete_product(context: TenantContext, product_id: int) -> Product:
    repo = ProductRepository(context)
    stock = StockItemRepository(context)

    def _op():
        product = repo.verify_ownership(product_id, for_update=True)
        counts = stock.status_counts(product_id=product.id)
        if counts.get(STOCK_AVAILABLE, 0) or counts.get(STOCK_RESERVED, 0):
            raise ConflictError("Product still has stock on hand")
        before = product.to_dict()
        repo.soft_delete(product.id)
        audit_service.log_delete(context, "PRODUCTS", product, before)
        return product

    return unit_of_work(_op)
