"""
Order settlement: returns, payments, expenses and dues recorded against an
order after it was placed, and the net figures derived from them.
"""

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal

from django.db import transaction
from django.db.models import DecimalField, Prefetch, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.catalog.units import base_quantity
from apps.common.exceptions import InvalidStateTransition, ResourceNotFound
from apps.common.money import ZERO, money_sum, to_money
from apps.distribution.models import Customer, Dsr
from apps.inventory.models import AdjustmentType
from apps.inventory.services import record_adjustment
from apps.settlement.models import (
    DueCollection,
    OrderCustomerDue,
    OrderDsrDue,
    OrderExpense,
    OrderItemReturn,
    OrderPayment,
)
from apps.wholesale.models import OrderStatus, WholesaleOrder, WholesaleOrderItem, payment_status_for

logger = logging.getLogger(__name__)

MONEY = DecimalField(max_digits=14, decimal_places=2)

SETTLEMENT_PREFETCH = (
    "items",
    "item_returns",
    "payments",
    "expenses",
    "customer_dues__customer",
    "dsr_dues",
)


@dataclass(frozen=True)
class SettlementSummary:
    order_total: Decimal
    total_returns: Decimal
    total_adjustment_discounts: Decimal
    net_order_total: Decimal
    total_payments: Decimal
    total_expenses: Decimal
    customer_due_amount: Decimal
    total_customer_due: Decimal
    computed_dsr_due: Decimal
    recorded_dsr_due: Decimal
    collected_dsr_due: Decimal
    outstanding_dsr_due: Decimal
    net_profit: Decimal

    @property
    def discrepancy(self):
        return self.computed_dsr_due != self.recorded_dsr_due

    def as_dict(self):
        data = asdict(self)
        data["discrepancy"] = self.discrepancy
        return data


def summarize(order):
    """Derived settlement figures for one order; works off prefetched relations."""
    returns = list(order.item_returns.all())
    customer_dues = list(order.customer_dues.all())
    dsr_dues = list(order.dsr_dues.all())

    total_returns = money_sum(r.return_amount for r in returns)
    total_adjustment_discounts = money_sum(r.adjustment_discount for r in returns)
    net_order_total = to_money(order.total - total_returns - total_adjustment_discounts)
    total_payments = money_sum(p.amount for p in order.payments.all())
    total_expenses = money_sum(e.amount for e in order.expenses.all())
    customer_due_amount = money_sum(d.amount for d in customer_dues)
    recorded_dsr_due = money_sum(d.amount for d in dsr_dues)
    collected_dsr_due = money_sum(d.collected_amount for d in dsr_dues)
    computed_dsr_due = max(
        to_money(net_order_total - total_payments - total_expenses - customer_due_amount),
        ZERO,
    )

    return SettlementSummary(
        order_total=to_money(order.total),
        total_returns=total_returns,
        total_adjustment_discounts=total_adjustment_discounts,
        net_order_total=net_order_total,
        total_payments=total_payments,
        total_expenses=total_expenses,
        customer_due_amount=customer_due_amount,
        total_customer_due=money_sum(d.outstanding for d in customer_dues),
        computed_dsr_due=computed_dsr_due,
        recorded_dsr_due=recorded_dsr_due,
        collected_dsr_due=collected_dsr_due,
        outstanding_dsr_due=to_money(recorded_dsr_due - collected_dsr_due),
        net_profit=to_money(money_sum(i.net for i in order.items.all()) - total_returns - total_adjustment_discounts),
    )


def item_profits(order):
    returns_by_item = {}
    for item_return in order.item_returns.all():
        returns_by_item.setdefault(item_return.item_id, []).append(item_return)
    rows = []
    for item in order.items.all():
        item_returns = returns_by_item.get(item.id, [])
        deductions = money_sum(r.return_amount + r.adjustment_discount for r in item_returns)
        rows.append({"item_id": item.id, "net": item.net, "returns": deductions, "profit": to_money(item.net - deductions)})
    return rows


def _settlement_order(order_id):
    try:
        return WholesaleOrder.objects.select_related("dsr", "route").prefetch_related(*SETTLEMENT_PREFETCH).get(
            pk=getattr(order_id, "pk", order_id)
        )
    except WholesaleOrder.DoesNotExist:
        raise ResourceNotFound(f"Order {getattr(order_id, 'pk', order_id)} not found.")


def _lock_order(order):
    try:
        return WholesaleOrder.objects.select_for_update().get(pk=getattr(order, "pk", order))
    except WholesaleOrder.DoesNotExist:
        raise ResourceNotFound(f"Order {getattr(order, 'pk', order)} not found.")


def _restock(order, item, base_units, free_units, created_by, note):
    if not base_units and not free_units:
        return None
    return record_adjustment(
        variant=item.variant_id,
        batch=item.batch_id,
        adjustment_type=AdjustmentType.RETURN_RESTOCK,
        quantity=base_units + free_units,
        free_quantity=free_units,
        order_id=order.pk,
        note=note,
        created_by=created_by,
    )


def _record_returns(order, item_returns, created_by, existing=None):
    """
    Insert item returns and put the goods back into their batches.

    ``existing`` maps item id to (base, free) units already returned, so
    cumulative returns never exceed what the item allocated.
    """
    existing = dict(existing or {})
    items = {str(item.pk): item for item in order.items.select_related("variant")}
    created = []
    for entry in item_returns:
        item = items.get(str(getattr(entry["item"], "pk", entry["item"])))
        if item is None:
            raise ValidationError({"item_returns": "Returned item does not belong to this order."})

        unit = (entry.get("return_unit") or item.unit or "PCS").strip().upper()
        returned_base = base_quantity(entry.get("return_quantity", 0), unit)
        returned_free = int(entry.get("return_free_quantity", 0) or 0)
        prior_base, prior_free = existing.get(item.pk, (0, 0))
        if prior_base + returned_base > item.paid_quantity:
            raise ValidationError(
                {"item_returns": f"Cannot return {prior_base + returned_base} units of item {item.pk}; only {item.paid_quantity} were sold."}
            )
        if prior_free + returned_free > item.free_quantity:
            raise ValidationError(
                {"item_returns": f"Cannot return {prior_free + returned_free} free units of item {item.pk}; only {item.free_quantity} were given."}
            )
        existing[item.pk] = (prior_base + returned_base, prior_free + returned_free)

        return_amount = entry.get("return_amount")
        if return_amount is None:
            return_amount = returned_base * item.sale_price

        created.append(
            OrderItemReturn.objects.create(
                order=order,
                item=item,
                return_quantity=int(entry.get("return_quantity", 0) or 0),
                return_unit=unit,
                returned_base_quantity=returned_base,
                return_free_quantity=returned_free,
                return_amount=to_money(return_amount),
                adjustment_discount=to_money(entry.get("adjustment_discount")),
            )
        )
        _restock(order, item, returned_base, returned_free, created_by, f"Return on {order.order_number}")
    return created


def _record_money(order, *, payments, expenses, customer_dues, payment_date, created_by):
    for payment in payments:
        OrderPayment.objects.create(
            order=order,
            amount=to_money(payment["amount"]),
            payment_date=payment.get("payment_date") or payment_date,
            method=payment.get("method") or "cash",
            note=payment.get("note", ""),
            created_by=created_by if getattr(created_by, "is_authenticated", False) else None,
        )
    for expense in expenses:
        OrderExpense.objects.create(
            order=order,
            amount=to_money(expense["amount"]),
            expense_type=expense.get("expense_type") or "other",
            note=expense.get("note", ""),
        )
    for due in customer_dues:
        customer = due["customer"]
        OrderCustomerDue.objects.create(
            order=order,
            customer_id=getattr(customer, "pk", customer),
            amount=to_money(due["amount"]),
        )


def _refresh_paid(order):
    order = _settlement_order(order.pk)
    summary = summarize(order)
    order.paid_amount = summary.total_payments
    order.payment_status = payment_status_for(summary.total_payments, summary.net_order_total)
    order.save(update_fields=["paid_amount", "payment_status", "updated_at"])
    return order, summary


def save_order_adjustment(
    order,
    *,
    payments=(),
    expenses=(),
    customer_dues=(),
    item_returns=(),
    payment_date=None,
    created_by=None,
):
    """
    Replace the order's settlement trail and mark it adjusted.

    Restocks of the replaced returns are reversed before the new returns are
    restocked. Whatever the DSR still owes after payments, expenses and
    customer dues becomes the order's DSR due.
    """
    payment_date = payment_date or timezone.localdate()
    with transaction.atomic():
        order = _lock_order(order)
        if DueCollection.objects.filter(customer_due__order=order).exists() or DueCollection.objects.filter(
            dsr_due__order=order
        ).exists():
            raise InvalidStateTransition("Dues of this order already have collections; the settlement cannot be replaced.")

        for previous in order.item_returns.select_related("item"):
            _restock(
                order,
                previous.item,
                -previous.returned_base_quantity,
                -previous.return_free_quantity,
                created_by,
                f"Settlement of {order.order_number} replaced",
            )
        order.item_returns.all().delete()
        order.payments.all().delete()
        order.expenses.all().delete()
        order.customer_dues.all().delete()
        order.dsr_dues.all().delete()

        _record_returns(order, item_returns, created_by)
        _record_money(
            order,
            payments=payments,
            expenses=expenses,
            customer_dues=customer_dues,
            payment_date=payment_date,
            created_by=created_by,
        )

        order, summary = _refresh_paid(order)
        if summary.computed_dsr_due > 0:
            OrderDsrDue.objects.create(order=order, dsr_id=order.dsr_id, amount=summary.computed_dsr_due)
        order.status = OrderStatus.ADJUSTED
        order.save(update_fields=["status", "updated_at"])

    order = _settlement_order(order.pk)
    summary = summarize(order)
    logger.info(
        "Settled order %s: net %s, payments %s, DSR due %s",
        order.order_number,
        summary.net_order_total,
        summary.total_payments,
        summary.recorded_dsr_due,
    )
    return order, summary


def complete_order_partially(
    order,
    *,
    payments=(),
    expenses=(),
    customer_dues=(),
    item_returns=(),
    payment_date=None,
    created_by=None,
):
    """Append to the settlement trail for the lines that moved; the order stays pending."""
    payment_date = payment_date or timezone.localdate()
    with transaction.atomic():
        order = _lock_order(order)
        existing = {}
        for row in order.item_returns.values("item_id").annotate(
            base=Coalesce(Sum("returned_base_quantity"), 0), free=Coalesce(Sum("return_free_quantity"), 0)
        ):
            existing[row["item_id"]] = (row["base"], row["free"])

        _record_returns(order, item_returns, created_by, existing=existing)
        _record_money(
            order,
            payments=payments,
            expenses=expenses,
            customer_dues=customer_dues,
            payment_date=payment_date,
            created_by=created_by,
        )
        order, summary = _refresh_paid(order)

    logger.info("Partially completed order %s: net %s", order.order_number, summary.net_order_total)
    return order, summary


def get_order_adjustment(order):
    order = _settlement_order(order)
    return order, summarize(order)


def reconcile_order(order):
    order = _settlement_order(order)
    summary = summarize(order)
    if summary.discrepancy:
        logger.warning(
            "Settlement discrepancy on order %s: computed DSR due %s, recorded %s",
            order.order_number,
            summary.computed_dsr_due,
            summary.recorded_dsr_due,
        )
    return {
        "order_id": order.pk,
        "order_number": order.order_number,
        "computed_dsr_due": summary.computed_dsr_due,
        "recorded_dsr_due": summary.recorded_dsr_due,
        "difference": to_money(summary.computed_dsr_due - summary.recorded_dsr_due),
        "discrepancy": summary.discrepancy,
    }


def _apply_collection(due, amount, *, collection_date, note, collected_by):
    due.collected_amount = to_money(due.collected_amount + amount)
    due.save(update_fields=["collected_amount", "updated_at"])
    target = {"customer_due": due} if isinstance(due, OrderCustomerDue) else {"dsr_due": due}
    return DueCollection.objects.create(
        amount=to_money(amount),
        collection_date=collection_date,
        note=note or "",
        collected_by=collected_by if getattr(collected_by, "is_authenticated", False) else None,
        **target,
    )


def collect_customer_due(customer, amount, *, due=None, collection_date=None, note="", collected_by=None):
    """
    Collect cash from a customer against one due, or oldest dues first.

    Rejects amounts above what is outstanding.
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError({"amount": "Collection amount must be greater than zero."})
    collection_date = collection_date or timezone.localdate()

    with transaction.atomic():
        dues = OrderCustomerDue.objects.select_for_update().filter(customer=customer)
        if due is not None:
            dues = dues.filter(pk=getattr(due, "pk", due))
        dues = [d for d in dues.order_by("order__order_date", "created_at") if d.outstanding > 0]
        outstanding = money_sum(d.outstanding for d in dues)
        if amount > outstanding:
            raise ValidationError(
                {"amount": f"Collection of {amount} exceeds the outstanding due of {outstanding}."}
            )

        collections = []
        remaining = amount
        for open_due in dues:
            if remaining <= 0:
                break
            portion = min(remaining, open_due.outstanding)
            collections.append(
                _apply_collection(
                    open_due, portion, collection_date=collection_date, note=note, collected_by=collected_by
                )
            )
            remaining -= portion

    logger.info("Collected %s from customer %s across %d dues", amount, getattr(customer, "pk", customer), len(collections))
    return collections


def collect_dsr_due(due, amount, *, collection_date=None, note="", collected_by=None):
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError({"amount": "Collection amount must be greater than zero."})

    with transaction.atomic():
        due = OrderDsrDue.objects.select_for_update().get(pk=getattr(due, "pk", due))
        if amount > due.outstanding:
            raise ValidationError({"amount": f"Collection of {amount} exceeds the outstanding due of {due.outstanding}."})
        collection = _apply_collection(
            due,
            amount,
            collection_date=collection_date or timezone.localdate(),
            note=note,
            collected_by=collected_by,
        )

    logger.info("Collected %s from DSR %s on due %s", amount, due.dsr_id, due.pk)
    return collection


def _orders_in_range(start=None, end=None):
    queryset = WholesaleOrder.objects.select_related("dsr", "route").prefetch_related(
        Prefetch("items", queryset=WholesaleOrderItem.objects.only("id", "order_id", "net")),
        *SETTLEMENT_PREFETCH[1:],
    )
    if start:
        queryset = queryset.filter(order_date__gte=start)
    if end:
        queryset = queryset.filter(order_date__lte=end)
    return queryset.order_by("order_date", "order_number")


def get_dsr_ledger(dsr, start=None, end=None):
    rows = []
    for order in _orders_in_range(start, end).filter(dsr=dsr):
        summary = summarize(order)
        rows.append(
            {
                "order_id": order.pk,
                "order_number": order.order_number,
                "order_date": order.order_date,
                "route_name": order.route.name,
                "status": order.status,
                **summary.as_dict(),
            }
        )
    return rows


def get_dsr_ledger_overview(start=None, end=None):
    totals = {}
    for order in _orders_in_range(start, end):
        summary = summarize(order)
        row = totals.setdefault(
            order.dsr_id,
            {
                "dsr_id": order.dsr_id,
                "dsr_name": order.dsr.name,
                "orders": 0,
                "order_total": ZERO,
                "net_order_total": ZERO,
                "total_payments": ZERO,
                "total_expenses": ZERO,
                "total_customer_due": ZERO,
                "recorded_dsr_due": ZERO,
                "outstanding_dsr_due": ZERO,
            },
        )
        row["orders"] += 1
        for field in (
            "order_total",
            "net_order_total",
            "total_payments",
            "total_expenses",
            "total_customer_due",
            "recorded_dsr_due",
            "outstanding_dsr_due",
        ):
            row[field] = to_money(row[field] + getattr(summary, field))
    return sorted(totals.values(), key=lambda r: r["dsr_name"])


def get_dsr_due_summary():
    today = timezone.localdate()
    rows = []
    for dsr in Dsr.objects.order_by("name"):
        open_dues = [d for d in dsr.dues.select_related("order") if d.outstanding > 0]
        if not open_dues:
            continue
        oldest = min(d.order.order_date for d in open_dues)
        rows.append(
            {
                "dsr_id": dsr.pk,
                "dsr_name": dsr.name,
                "orders": len({d.order_id for d in open_dues}),
                "outstanding": money_sum(d.outstanding for d in open_dues),
                "oldest_due_date": oldest,
                "oldest_due_days": (today - oldest).days,
            }
        )
    return rows


def get_dsr_total_due(dsr):
    totals = OrderDsrDue.objects.filter(dsr=dsr).aggregate(
        amount=Coalesce(Sum("amount"), ZERO, output_field=MONEY),
        collected=Coalesce(Sum("collected_amount"), ZERO, output_field=MONEY),
    )
    return to_money(totals["amount"] - totals["collected"])


def customers_with_dues():
    rows = []
    for customer in Customer.objects.select_related("route").prefetch_related("dues").order_by("name"):
        outstanding = money_sum(d.outstanding for d in customer.dues.all())
        if outstanding > 0:
            rows.append(
                {
                    "customer_id": customer.pk,
                    "name": customer.name,
                    "shop_name": customer.shop_name,
                    "route_name": customer.route.name if customer.route else None,
                    "outstanding": outstanding,
                }
            )
    return rows


def customer_due_details(customer):
    return OrderCustomerDue.objects.filter(customer=customer).select_related("order").order_by(
        "order__order_date", "created_at"
    )


def collection_history(customer=None, dsr=None):
    queryset = DueCollection.objects.select_related(
        "customer_due__order", "customer_due__customer", "dsr_due__order", "dsr_due__dsr", "collected_by"
    )
    if customer is not None:
        queryset = queryset.filter(customer_due__customer=customer)
    if dsr is not None:
        queryset = queryset.filter(dsr_due__dsr=dsr)
    return queryset
