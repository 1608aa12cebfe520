# Overview: Service-layer operations for EMI plans; scheduling, installment payments, overdue sweep.

"""
EMI Installment Engine

SCHEDULE: installments 1..N, due_date = start + (n-1) calendar months
(dateutil relativedelta, so Jan 31 -> Feb 28/29 -> Mar 31). Every
installment is installment_amount except the last, which absorbs the
remainder so the schedule always sums to total_amount.

PAYMENT (one transaction, exactly one installment per call):
- installment.paid += amount; PAID once paid >= installment amount
- plan.remaining -= amount
- current_installment -> lowest-numbered installment not yet PAID
- plan PAID once remaining <= 0
- paired EMI Transaction

INVARIANT: sum(installment.paid) + plan.remaining == plan.total, always.
Payments larger than the plan's remaining amount are rejected.

OVERDUE SWEEP: PENDING installments due before today -> OVERDUE; PENDING
plans whose next_installment_date is before today -> OVERDUE. Running it
again changes nothing.
"""

from __future__ import annotations

import logging
from datetime import date

from dateutil.relativedelta import relativedelta

from ..extensions import db
from ..errors import InvalidStateTransition, OverPayment, ValidationError
from ..models import EmiInstallment, EmiPayment, Transaction
from ..models.emi import EMI_OVERDUE, EMI_PAID, EMI_PENDING
from ..models.finance import PAYMENT_METHODS, TXN_EMI
from ..repositories.catalog import CustomerRepository
from ..repositories.emi import EmiPaymentRepository
from ..repositories.orders import SalesOrderRepository
from ..tenancy import TenantContext
from . import audit_service
from .concurrency import unit_of_work
from jewelshop.time_utils import parse_iso_date, parse_iso_datetime, today, utcnow


logger = logging.getLogger(__name__)

AUDIT_MODULE = "EMI_PAYMENTS"


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return value


def build_schedule(
    *,
    total_amount_paise: int,
    number_of_installments: int,
    installment_amount_paise: int,
    start_date: date,
) -> list[tuple[int, date, int]]:
    """Return [(installment_number, due_date, amount_paise), ...]."""
    if (number_of_installments - 1) * installment_amount_paise >= total_amount_paise:
        raise ValidationError(
            "installment_amount_paise too large: the final installment would be zero or negative"
        )
    schedule = []
    for n in range(1, number_of_installments + 1):
        due = start_date + relativedelta(months=n - 1)
        if n < number_of_installments:
            amount = installment_amount_paise
        else:
            amount = total_amount_paise - installment_amount_paise * (number_of_installments - 1)
        schedule.append((n, due, amount))
    return schedule


def next_unpaid(installments) -> EmiInstallment | None:
    for installment in sorted(installments, key=lambda i: i.installment_number):
        if installment.status != EMI_PAID:
            return installment
    return None


def create_emi_payment(
    context: TenantContext,
    *,
    customer_id: int,
    total_amount_paise: int,
    number_of_installments: int,
    installment_amount_paise: int,
    emi_start_date,
    sales_order_id: int | None = None,
    interest_rate_bps: int = 0,
    notes: str | None = None,
) -> EmiPayment:
    repo = EmiPaymentRepository(context)
    customers = CustomerRepository(context)
    orders = SalesOrderRepository(context)

    total_amount_paise = _positive_int(total_amount_paise, "total_amount_paise")
    number_of_installments = _positive_int(number_of_installments, "number_of_installments")
    installment_amount_paise = _positive_int(installment_amount_paise, "installment_amount_paise")
    if isinstance(interest_rate_bps, bool) or not isinstance(interest_rate_bps, int) or interest_rate_bps < 0:
        raise ValidationError("interest_rate_bps must be a non-negative integer")
    try:
        start = parse_iso_date(emi_start_date)
    except ValueError:
        raise ValidationError("emi_start_date must be YYYY-MM-DD")
    if start is None:
        raise ValidationError("emi_start_date is required")

    schedule = build_schedule(
        total_amount_paise=total_amount_paise,
        number_of_installments=number_of_installments,
        installment_amount_paise=installment_amount_paise,
        start_date=start,
    )

    def _op():
        customer = customers.verify_ownership(customer_id)
        if sales_order_id is not None:
            order = orders.verify_ownership(sales_order_id)
            if order.customer_id != customer.id:
                raise ValidationError("Sales order belongs to a different customer")

        plan = repo.create(
            customer_id=customer.id,
            sales_order_id=sales_order_id,
            total_amount_paise=total_amount_paise,
            number_of_installments=number_of_installments,
            installment_amount_paise=installment_amount_paise,
            interest_rate_bps=interest_rate_bps,
            emi_start_date=start,
            next_installment_date=start,
            current_installment=1,
            remaining_amount_paise=total_amount_paise,
            status=EMI_PENDING,
            notes=notes,
        )
        for number, due, amount in schedule:
            db.session.add(EmiInstallment(
                emi_payment_id=plan.id,
                installment_number=number,
                due_date=due,
                amount_paise=amount,
                paid_amount_paise=0,
                status=EMI_PENDING,
            ))
        db.session.flush()
        audit_service.log_create(context, AUDIT_MODULE, plan)
        return plan

    return unit_of_work(_op)


def pay_installment(
    context: TenantContext,
    emi_payment_id: int,
    *,
    installment_number: int,
    amount_paise: int,
    payment_method: str = "CASH",
    payment_date=None,
) -> EmiPayment:
    repo = EmiPaymentRepository(context)

    amount_paise = _positive_int(amount_paise, "amount_paise")
    installment_number = _positive_int(installment_number, "installment_number")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(sorted(PAYMENT_METHODS))}")
    try:
        paid_at = parse_iso_datetime(payment_date) if isinstance(payment_date, str) else payment_date
    except ValueError:
        raise ValidationError("payment_date must be an ISO-8601 datetime")
    paid_at = paid_at or utcnow()

    def _op():
        plan = repo.verify_ownership(emi_payment_id, for_update=True)
        if plan.status == EMI_PAID:
            raise InvalidStateTransition("EMI payment", plan.status, [EMI_PENDING, EMI_OVERDUE], "pay")

        installment = repo.get_installment(plan.id, installment_number)
        if installment.status == EMI_PAID:
            raise InvalidStateTransition(
                "EMI installment", installment.status, [EMI_PENDING, EMI_OVERDUE], "pay"
            )
        if amount_paise > plan.remaining_amount_paise:
            raise OverPayment(amount_paise, plan.remaining_amount_paise)

        before = plan.to_dict()

        installment.paid_amount_paise += amount_paise
        installment.payment_method = payment_method
        if installment.paid_amount_paise >= installment.amount_paise:
            installment.status = EMI_PAID
            installment.paid_date = paid_at

        plan.remaining_amount_paise -= amount_paise

        upcoming = next_unpaid(plan.installments)
        if upcoming is not None:
            plan.current_installment = upcoming.installment_number
            plan.next_installment_date = upcoming.due_date
        else:
            plan.current_installment = plan.number_of_installments
            plan.next_installment_date = None

        if plan.remaining_amount_paise <= 0:
            plan.status = EMI_PAID
        elif plan.status == EMI_OVERDUE and not any(
            i.status == EMI_OVERDUE for i in plan.installments
        ):
            plan.status = EMI_PENDING

        db.session.add(Transaction(
            shop_id=plan.shop_id,
            transaction_date=paid_at,
            transaction_type=TXN_EMI,
            category="SALES",
            amount_paise=amount_paise,
            payment_mode=payment_method,
            description=f"EMI installment {installment.installment_number} of plan {plan.id}",
            customer_id=plan.customer_id,
            sales_order_id=plan.sales_order_id,
            emi_payment_id=plan.id,
            created_by_user_id=context.user_id,
        ))
        db.session.flush()
        audit_service.log_update(context, AUDIT_MODULE, plan, before)
        return plan

    return unit_of_work(_op)


def mark_overdue_installments(context: TenantContext | None = None, *, as_of: date | None = None) -> dict:
    """
    Reclassify overdue installments and plans.

    With a context the sweep is limited to that shop; without one (CLI /
    scheduler) it covers every shop.
    """
    cutoff = as_of or today()

    def _op():
        installments_q = (
            db.session.query(EmiInstallment)
            .join(EmiPayment, EmiPayment.id == EmiInstallment.emi_payment_id)
            .filter(
                EmiInstallment.status == EMI_PENDING,
                EmiInstallment.due_date < cutoff,
                EmiPayment.deleted_at.is_(None),
                EmiPayment.status != EMI_PAID,
            )
        )
        plans_q = db.session.query(EmiPayment).filter(
            EmiPayment.status == EMI_PENDING,
            EmiPayment.next_installment_date < cutoff,
            EmiPayment.deleted_at.is_(None),
        )
        if context is not None:
            shop_id = context.require_shop()
            installments_q = installments_q.filter(EmiPayment.shop_id == shop_id)
            plans_q = plans_q.filter(EmiPayment.shop_id == shop_id)

        installments = installments_q.all()
        for installment in installments:
            installment.status = EMI_OVERDUE

        plans = plans_q.all()
        for plan in plans:
            plan.status = EMI_OVERDUE
            audit_service.log_status_change(
                context or _system_context(plan.shop_id), AUDIT_MODULE, plan, EMI_PENDING, EMI_OVERDUE
            )

        db.session.flush()
        return {"installments_marked": len(installments), "payments_marked": len(plans)}

    result = unit_of_work(_op)
    logger.info(
        "Overdue sweep as of %s: %d installments, %d plans",
        cutoff, result["installments_marked"], result["payments_marked"],
    )
    return result


def _system_context(shop_id: int) -> TenantContext:
    return TenantContext.system(shop_id)


def get_emi_payment(context: TenantContext, emi_payment_id: int) -> EmiPayment:
    return EmiPaymentRepository(context).get(emi_payment_id)


def list_emi_payments(context: TenantContext, filters: dict, page_request):
    return EmiPaymentRepository(context).list(filters, page_request)


def upcoming_installments(context: TenantContext, days: int = 7) -> list[EmiInstallment]:
    return EmiPaymentRepository(context).upcoming_installments(days)


def overdue_payments(context: TenantContext) -> list[EmiPayment]:
    return EmiPaymentRepository(context).overdue_payments()


def customer_summary(context: TenantContext, customer_id: int) -> dict:
    CustomerRepository(context).verify_ownership(customer_id)
    plans = EmiPaymentRepository(context).for_customer(customer_id)
    total = sum(p.total_amount_paise for p in plans)
    remaining = sum(p.remaining_amount_paise for p in plans)
    counts = {EMI_PENDING: 0, EMI_PAID: 0, EMI_OVERDUE: 0}
    for plan in plans:
        counts[plan.status] = counts.get(plan.status, 0) + 1
    return {
        "customer_id": customer_id,
        "total_amount_paise": total,
        "paid_amount_paise": total - remaining,
        "remaining_amount_paise": remaining,
        "counts_by_status": counts,
        "plans": [p.to_dict() for p in plans],
    }
