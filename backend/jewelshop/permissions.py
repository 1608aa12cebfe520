# Overview: Static role to permission mapping for shop users.

"""
Permission Definitions

Roles are fixed (SUPER_ADMIN, OWNER, SALES, ACCOUNTS); each permission code
lists the roles that hold it. SUPER_ADMIN only manages shops and users and
does not implicitly receive shop-level permissions.
"""

from __future__ import annotations

from .models.auth import ROLE_ACCOUNTS, ROLE_OWNER, ROLE_SALES, ROLE_SUPER_ADMIN


OWNER = ROLE_OWNER
SALES = ROLE_SALES
ACCOUNTS = ROLE_ACCOUNTS
SUPER_ADMIN = ROLE_SUPER_ADMIN


PERMISSIONS: dict[str, tuple[str, ...]] = {
    # Customers
    "CUSTOMER_CREATE": (OWNER, SALES),
    "CUSTOMER_EDIT": (OWNER, SALES),
    "CUSTOMER_DELETE": (OWNER,),
    "CUSTOMER_VIEW": (OWNER, SALES, ACCOUNTS),

    # Products & stock
    "PRODUCT_CREATE": (OWNER, SALES),
    "PRODUCT_EDIT": (OWNER, SALES),
    "PRODUCT_DELETE": (OWNER,),
    "PRODUCT_VIEW": (OWNER, SALES, ACCOUNTS),
    "STOCK_MANAGE": (OWNER, SALES),

    # Sales orders
    "SALES_CREATE": (OWNER, SALES),
    "SALES_EDIT": (OWNER, SALES),
    "SALES_DELETE": (OWNER,),
    "SALES_VIEW": (OWNER, SALES, ACCOUNTS),

    # Purchase orders
    "PURCHASE_CREATE": (OWNER, ACCOUNTS),
    "PURCHASE_EDIT": (OWNER, ACCOUNTS),
    "PURCHASE_DELETE": (OWNER,),
    "PURCHASE_VIEW": (OWNER, ACCOUNTS),

    # Suppliers
    "SUPPLIER_CREATE": (OWNER, ACCOUNTS),
    "SUPPLIER_EDIT": (OWNER, ACCOUNTS),
    "SUPPLIER_DELETE": (OWNER,),
    "SUPPLIER_VIEW": (OWNER, ACCOUNTS, SALES),

    # Finance
    "TRANSACTION_CREATE": (OWNER, ACCOUNTS),
    "TRANSACTION_DELETE": (OWNER,),
    "TRANSACTION_VIEW": (OWNER, ACCOUNTS),
    "EMI_MANAGE": (OWNER, ACCOUNTS),

    # Reports
    "REPORTS_SALES": (OWNER, SALES, ACCOUNTS),
    "REPORTS_INVENTORY": (OWNER, SALES, ACCOUNTS),
    "REPORTS_FINANCIAL": (OWNER, ACCOUNTS),

    # Rate master
    "RATE_MASTER_EDIT": (OWNER, ACCOUNTS),
    "RATE_MASTER_VIEW": (OWNER, SALES, ACCOUNTS),

    # Shop administration
    "USER_MANAGE": (OWNER,),
    "AUDIT_VIEW": (OWNER,),

    # Platform operator
    "SUPER_ADMIN_SHOPS_MANAGE": (SUPER_ADMIN,),
    "SUPER_ADMIN_USERS_MANAGE": (SUPER_ADMIN,),
}


def has_permission(role: str | None, permission_code: str) -> bool:
    if not role:
        return False
    return role in PERMISSIONS.get(permission_code, ())


def permissions_for_role(role: str) -> list[str]:
    return sorted(code for code, roles in PERMISSIONS.items() if role in roles)
