# Overview: Domain error taxonomy shared by repositories, services, and routes.

"""
Domain errors.

Every workflow failure is raised as a DomainError subclass carrying:
- status_code: HTTP status the route layer responds with
- code: stable machine-readable identifier
- message: human-readable text (safe to show to the caller)
- details: structured context (limits, current/required state, ...)

Routes never build error payloads by hand for these; the application
error handler turns them into the standard envelope.
"""

from __future__ import annotations


class DomainError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(DomainError):
    """400-level input problem."""
    status_code = 400
    code = "VALIDATION_ERROR"


class ConflictError(DomainError):
    """409-level business rule conflict (e.g., duplicate barcode)."""
    status_code = 409
    code = "CONFLICT"


class AuthenticationRequired(DomainError):
    status_code = 401
    code = "AUTHENTICATION_REQUIRED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class PermissionDenied(DomainError):
    status_code = 403
    code = "PERMISSION_DENIED"

    def __init__(self, permission: str, role: str | None = None):
        super().__init__(
            f"Permission denied: {permission}",
            {"required_permission": permission, "role": role},
        )


class NoShopContext(DomainError):
    """Workflow invoked without a resolvable shop. Raised before any query runs."""
    status_code = 403
    code = "NO_SHOP_CONTEXT"

    def __init__(self, message: str = "No shop associated with this session"):
        super().__init__(message)


class NotFoundOrForeignTenant(DomainError):
    """
    Entity absent, soft-deleted, or owned by another shop.

    SECURITY: The three cases are indistinguishable to the caller.
    """
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id=None):
        super().__init__(f"{entity} not found", {"entity": entity, "id": entity_id})


class StockUnavailable(ConflictError):
    code = "STOCK_UNAVAILABLE"

    def __init__(self, tag_id: str, current_status: str, required_status: str = "AVAILABLE"):
        super().__init__(
            f"Stock item {tag_id} is not available (status: {current_status})",
            {
                "tag_id": tag_id,
                "current_status": current_status,
                "required_status": required_status,
            },
        )
        self.current_status = current_status


class OverReceipt(ValidationError):
    code = "OVER_RECEIPT"

    def __init__(self, purchase_order_item_id: int, requested: int, pending: int):
        super().__init__(
            f"Cannot receive {requested} units for item {purchase_order_item_id}; "
            f"only {pending} pending",
            {
                "purchase_order_item_id": purchase_order_item_id,
                "requested": requested,
                "pending_quantity": pending,
            },
        )


class OverPayment(ValidationError):
    code = "OVER_PAYMENT"

    def __init__(self, amount_paise: int, balance_paise: int):
        super().__init__(
            f"Payment of {amount_paise} exceeds remaining balance of {balance_paise}",
            {"amount_paise": amount_paise, "remaining_balance_paise": balance_paise},
        )


class DiscountExceedsTotal(ValidationError):
    code = "DISCOUNT_EXCEEDS_TOTAL"

    def __init__(self, discount_paise: int, order_total_paise: int):
        super().__init__(
            "Discount cannot exceed order total",
            {"discount_paise": discount_paise, "order_total_paise": order_total_paise},
        )


class InvalidStateTransition(ConflictError):
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, entity: str, current: str, required, action: str):
        if isinstance(required, (list, tuple, set, frozenset)):
            required = sorted(required)
            required_text = " or ".join(required)
        else:
            required_text = required
        super().__init__(
            f"Cannot {action} {entity} in status {current}; requires {required_text}",
            {"entity": entity, "current_status": current, "required_status": required, "action": action},
        )


class InvoiceCollision(ConflictError):
    """Generated invoice number already exists after every retry. Safe to retry."""
    code = "INVOICE_COLLISION"

    def __init__(self, attempts: int):
        super().__init__(
            "Invoice number collision, please try again",
            {"attempts": attempts, "retryable": True},
        )


class CannotClose(ConflictError):
    code = "CANNOT_CLOSE"

    def __init__(self, unmet: list[str], details: dict | None = None):
        payload = {"unmet_conditions": unmet}
        payload.update(details or {})
        super().__init__(
            "Purchase order cannot be closed: " + "; ".join(unmet),
            payload,
        )
        self.unmet = unmet


class RateNotConfigured(ValidationError):
    code = "RATE_NOT_CONFIGURED"

    def __init__(self, metal_type: str, purity: str):
        super().__init__(
            f"No active rate found for {metal_type} {purity}. "
            "Set up the rate master before pricing this item.",
            {"metal_type": metal_type, "purity": purity},
        )
