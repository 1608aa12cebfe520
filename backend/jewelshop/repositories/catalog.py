# Overview: Repositories for customers, suppliers, and products.

from __future__ import annotations

from ..models import Customer, Product, Supplier
from .base import ShopScopedRepository


class CustomerRepository(ShopScopedRepository):
    model = Customer
    entity_name = "Customer"
    filterable_fields = ("customer_type", "city")
    search_fields = ("name", "phone", "email")

    def find_by_phone(self, phone: str) -> Customer | None:
        return self.query().filter(Customer.phone == phone).first()

    def ordering(self):
        return (Customer.name.asc(), Customer.id.asc())


class SupplierRepository(ShopScopedRepository):
    model = Supplier
    entity_name = "Supplier"
    filterable_fields = ("is_active",)
    search_fields = ("name", "contact_person", "phone")

    def find_by_name(self, name: str) -> Supplier | None:
        return self.query().filter(Supplier.name == name).first()

    def ordering(self):
        return (Supplier.name.asc(), Supplier.id.asc())


class ProductRepository(ShopScopedRepository):
    model = Product
    entity_name = "Product"
    filterable_fields = ("metal_type", "purity", "category", "supplier_id", "collection_name")
    search_fields = ("name", "barcode", "huid", "tag_number")

    def find_by_barcode(self, barcode: str) -> Product | None:
        return self.query().filter(Product.barcode == barcode).first()

    def matching_rate_pair(
        self,
        metal_type: str,
        purity: str,
        *,
        collection: str | None = None,
        product_ids: list[int] | None = None,
    ) -> list[Product]:
        query = self.query().filter(Product.metal_type == metal_type, Product.purity == purity)
        if collection:
            query = query.filter(Product.collection_name.ilike(f"%{collection}%"))
        if product_ids:
            query = query.filter(Product.id.in_(product_ids))
        return query.order_by(Product.id.asc()).all()
