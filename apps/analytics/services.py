"""
Read-only sales rollups.

Sales figures are gross order totals minus what settlement took back for the
same orders (returned goods and adjustment discounts).
"""

import math
from datetime import timedelta
from decimal import Decimal

from django.db.models import Count, DecimalField, F, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from apps.common.money import ZERO, to_money
from apps.settlement.models import OrderItemReturn, OrderPayment
from apps.wholesale.models import WholesaleOrder, WholesaleOrderItem

PERIODS = ("daily", "weekly", "monthly")
MONEY = DecimalField(max_digits=16, decimal_places=2)
DEFAULT_RANGE_DAYS = 30


def _money_sum(expression):
    return Coalesce(Sum(expression), Value(Decimal("0.00")), output_field=MONEY)


def week_key(day):
    """Calendar week of the year counted from the Sunday-based weekday of January 1st."""
    jan_first = day.replace(month=1, day=1)
    first_weekday = (jan_first.weekday() + 1) % 7
    week = math.ceil(((day - jan_first).days + first_weekday + 1) / 7)
    return f"{day.year}-W{week:02d}"


def period_key(day, period):
    if period == "weekly":
        return week_key(day)
    if period == "monthly":
        return f"{day.year}-{day.month:02d}"
    return day.isoformat()


def orders_in_range(date_from=None, date_to=None, **filters):
    queryset = WholesaleOrder.objects.all()
    if date_from:
        queryset = queryset.filter(order_date__gte=date_from)
    if date_to:
        queryset = queryset.filter(order_date__lte=date_to)
    return queryset.filter(**{k: v for k, v in filters.items() if v not in (None, "")})


def returns_by_order(orders):
    rows = (
        OrderItemReturn.objects.filter(order__in=orders)
        .values("order_id")
        .annotate(returns=_money_sum("return_amount"), discounts=_money_sum("adjustment_discount"))
    )
    return {row["order_id"]: (row["returns"], row["discounts"]) for row in rows}


def _totals(orders):
    aggregate = orders.aggregate(gross_sales=_money_sum("total"), orders=Count("id"))
    returns = OrderItemReturn.objects.filter(order__in=orders).aggregate(
        returns=_money_sum("return_amount"), adjustment_discounts=_money_sum("adjustment_discount")
    )
    item_net = WholesaleOrderItem.objects.filter(order__in=orders).aggregate(net=_money_sum("net"))["net"]
    payments = OrderPayment.objects.filter(order__in=orders).aggregate(total=_money_sum("amount"))["total"]

    gross = to_money(aggregate["gross_sales"])
    deductions = to_money(returns["returns"] + returns["adjustment_discounts"])
    net_sales = to_money(gross - deductions)
    order_count = aggregate["orders"]
    return {
        "gross_sales": gross,
        "returns": to_money(returns["returns"]),
        "adjustment_discounts": to_money(returns["adjustment_discounts"]),
        "net_sales": net_sales,
        "profit": to_money(item_net - deductions),
        "payments": to_money(payments),
        "orders": order_count,
        "average_order": to_money(net_sales / order_count) if order_count else ZERO,
    }


def _change_pct(current, previous):
    if not previous:
        return None
    return to_money((Decimal(current) - Decimal(previous)) * 100 / Decimal(previous))


def sales_overview(date_from=None, date_to=None):
    """Totals for the range plus the same figures for the preceding range of equal length."""
    date_to = date_to or timezone.localdate()
    date_from = date_from or date_to - timedelta(days=DEFAULT_RANGE_DAYS - 1)
    length = (date_to - date_from).days + 1
    previous_to = date_from - timedelta(days=1)
    previous_from = previous_to - timedelta(days=length - 1)

    current = _totals(orders_in_range(date_from, date_to))
    previous = _totals(orders_in_range(previous_from, previous_to))
    return {
        "range": {"date_from": date_from, "date_to": date_to},
        "previous_range": {"date_from": previous_from, "date_to": previous_to},
        "current": current,
        "previous": previous,
        "change_pct": {
            field: _change_pct(current[field], previous[field]) for field in ("net_sales", "orders", "profit")
        },
    }


def _fill_keys(date_from, date_to, period):
    keys = []
    day = date_from
    while day <= date_to:
        keys.append(period_key(day, period))
        day += timedelta(days=1)
    return list(dict.fromkeys(keys))


def sales_by_period(period="daily", date_from=None, date_to=None):
    if period not in PERIODS:
        raise ValueError(f"Unknown period {period!r}")

    orders = orders_in_range(date_from, date_to)
    deductions = returns_by_order(orders)
    buckets = {}
    for order_id, order_date, total in orders.values_list("id", "order_date", "total"):
        key = period_key(order_date, period)
        bucket = buckets.setdefault(key, {"gross_sales": ZERO, "returns": ZERO, "orders": 0})
        returns, discounts = deductions.get(order_id, (ZERO, ZERO))
        bucket["gross_sales"] = to_money(bucket["gross_sales"] + total)
        bucket["returns"] = to_money(bucket["returns"] + returns + discounts)
        bucket["orders"] += 1

    keys = sorted(buckets)
    if date_from and date_to:
        keys = list(dict.fromkeys(_fill_keys(date_from, date_to, period) + keys))

    rows = []
    for key in keys:
        bucket = buckets.get(key, {"gross_sales": ZERO, "returns": ZERO, "orders": 0})
        rows.append(
            {
                "period": key,
                "sales": to_money(bucket["gross_sales"] - bucket["returns"]),
                "gross_sales": bucket["gross_sales"],
                "returns": bucket["returns"],
                "orders": bucket["orders"],
            }
        )
    return rows


def _grouped_sales(orders, id_field, name_field):
    deductions = returns_by_order(orders)
    groups = {}
    for order_id, group_id, name, total in orders.values_list("id", id_field, name_field, "total"):
        row = groups.setdefault(group_id, {"id": group_id, "name": name, "gross_sales": ZERO, "returns": ZERO, "orders": 0})
        returns, discounts = deductions.get(order_id, (ZERO, ZERO))
        row["gross_sales"] = to_money(row["gross_sales"] + total)
        row["returns"] = to_money(row["returns"] + returns + discounts)
        row["orders"] += 1
    rows = [{**row, "sales": to_money(row["gross_sales"] - row["returns"])} for row in groups.values()]
    return sorted(rows, key=lambda row: (-row["sales"], row["name"]))


def sales_by_dsr(date_from=None, date_to=None):
    return _grouped_sales(orders_in_range(date_from, date_to), "dsr_id", "dsr__name")


def sales_by_route(date_from=None, date_to=None):
    return _grouped_sales(orders_in_range(date_from, date_to), "route_id", "route__name")


def top_products(date_from=None, date_to=None, limit=10):
    orders = orders_in_range(date_from, date_to)
    returned = {
        row["item__product_id"]: row
        for row in OrderItemReturn.objects.filter(order__in=orders)
        .values("item__product_id")
        .annotate(
            amount=_money_sum(F("return_amount") + F("adjustment_discount")),
            units=Coalesce(Sum("returned_base_quantity"), 0),
        )
    }
    rows = []
    for row in (
        WholesaleOrderItem.objects.filter(order__in=orders)
        .values("product_id", "product__name")
        .annotate(
            units=Coalesce(Sum(F("total_quantity") - F("free_quantity")), 0),
            free_units=Coalesce(Sum("free_quantity"), 0),
            gross_sales=_money_sum("net"),
        )
    ):
        back = returned.get(row["product_id"], {"amount": ZERO, "units": 0})
        rows.append(
            {
                "product_id": row["product_id"],
                "product_name": row["product__name"],
                "units_sold": row["units"] - back["units"],
                "free_units": row["free_units"],
                "sales": to_money(row["gross_sales"] - back["amount"]),
            }
        )
    rows.sort(key=lambda row: (-row["sales"], -row["units_sold"], row["product_name"]))
    return rows[:limit]


def order_status_distribution(date_from=None, date_to=None):
    orders = orders_in_range(date_from, date_to)
    return {
        "by_status": list(orders.values("status").annotate(orders=Count("id"), total=_money_sum("total")).order_by("status")),
        "by_payment_status": list(
            orders.values("payment_status").annotate(orders=Count("id"), total=_money_sum("total")).order_by("payment_status")
        ),
    }
