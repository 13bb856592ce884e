"""
Order allocation: every order line names its batch, and the order, its items
and the batch reservations are written in one transaction.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.catalog.models import ProductVariant
from apps.catalog.units import unit_multiplier
from apps.common.exceptions import InvalidStateTransition, OrderEditLocked, OwnershipMismatch, ResourceNotFound
from apps.common.models import GlobalSettings, NumberSequence
from apps.common.money import ZERO, money_sum, to_money
from apps.inventory.services import lock_batches, release, reserve
from apps.wholesale.models import OrderStatus, WholesaleOrder, WholesaleOrderItem, payment_status_for

logger = logging.getLogger(__name__)

ORDER_RELATED = ("dsr", "route", "category", "brand", "created_by")
ITEM_RELATED = ("product__brand", "variant", "batch")
ITEM_VALUE_FIELDS = (
    "product_id",
    "variant_id",
    "batch",
    "quantity",
    "unit",
    "extra_pieces",
    "free_quantity",
    "total_quantity",
    "sale_price",
    "discount",
    "subtotal",
    "net",
)


@dataclass(frozen=True)
class LinePricing:
    multiplier: int
    paid_quantity: int
    total_quantity: int
    subtotal: Decimal
    net: Decimal


def price_line(*, quantity, unit, sale_price, extra_pieces=0, free_quantity=0, discount=ZERO):
    multiplier = unit_multiplier(unit)
    paid_quantity = int(quantity) * multiplier + int(extra_pieces or 0)
    subtotal = to_money(Decimal(paid_quantity) * to_money(sale_price))
    return LinePricing(
        multiplier=multiplier,
        paid_quantity=paid_quantity,
        total_quantity=paid_quantity + int(free_quantity or 0),
        subtotal=subtotal,
        net=to_money(subtotal - to_money(discount)),
    )


def _pk(value):
    return getattr(value, "pk", value)


def _validate_line(line, batch):
    product_id, variant_id = _pk(line["product"]), _pk(line["variant"])
    variant = line["variant"]
    if not isinstance(variant, ProductVariant):
        variant = ProductVariant.objects.only("product_id").filter(pk=variant_id).first()
        if variant is None:
            raise ResourceNotFound(f"Variant {variant_id} not found.")
    if variant.product_id != product_id:
        logger.warning("Order line names variant %s of product %s, expected %s", variant_id, variant.product_id, product_id)
        raise OwnershipMismatch(f"Variant {variant_id} does not belong to product {product_id}.")
    if batch.variant_id != variant_id:
        logger.warning("Order line names batch %s of variant %s, expected %s", batch.pk, batch.variant_id, variant_id)
        raise OwnershipMismatch(f"Batch {batch.pk} does not belong to variant {variant_id}.")

    pricing = price_line(
        quantity=line.get("quantity", 0),
        unit=line.get("unit") or "PCS",
        sale_price=line["sale_price"],
        extra_pieces=line.get("extra_pieces", 0),
        free_quantity=line.get("free_quantity", 0),
        discount=line.get("discount", ZERO),
    )
    if pricing.total_quantity <= 0:
        raise ValidationError({"items": "Each item must carry at least one unit."})
    if to_money(line.get("discount", ZERO)) > pricing.subtotal:
        raise ValidationError({"items": f"Discount on batch {batch.pk} exceeds the line subtotal."})
    return pricing


def _allocate(order, lines, batches):
    items = []
    for line in lines:
        batch = batches[str(_pk(line["batch"]))]
        pricing = _validate_line(line, batch)
        reserve(batch, pricing.total_quantity, line.get("free_quantity", 0))
        items.append(
            WholesaleOrderItem(
                order=order,
                product_id=_pk(line["product"]),
                variant_id=_pk(line["variant"]),
                batch=batch,
                quantity=int(line.get("quantity", 0)),
                unit=(line.get("unit") or "PCS").strip().upper(),
                extra_pieces=int(line.get("extra_pieces", 0) or 0),
                free_quantity=int(line.get("free_quantity", 0) or 0),
                total_quantity=pricing.total_quantity,
                sale_price=to_money(line["sale_price"]),
                discount=to_money(line.get("discount", ZERO)),
                subtotal=pricing.subtotal,
                net=pricing.net,
            )
        )
    return items


def _release_item(item, batch):
    returned = item.returns.aggregate(
        base=Coalesce(Sum("returned_base_quantity"), 0),
        free=Coalesce(Sum("return_free_quantity"), 0),
    )
    release(
        batch,
        item.total_quantity - returned["base"] - returned["free"],
        item.free_quantity - returned["free"],
    )


def _apply_totals(order):
    totals = order.items.aggregate(subtotal=Sum("subtotal"), discount=Sum("discount"))
    order.subtotal = to_money(totals["subtotal"])
    order.discount = to_money(totals["discount"])
    order.total = to_money(order.subtotal - order.discount)
    order.payment_status = payment_status_for(order.paid_amount, order.total)
    order.save(update_fields=["subtotal", "discount", "total", "payment_status", "updated_at"])
    return order


def _ensure_no_returns(order):
    if order.item_returns.exists():
        raise InvalidStateTransition("Order items cannot change once returns have been recorded.")


def generate_order_number(year=None):
    """Next ``<prefix>-<year>-####`` number, serialized through a locked counter row."""
    prefix = settings.ORDER_NUMBER_PREFIX
    year = year or timezone.localdate().year
    stem = f"{prefix}-{year}-"

    def seed():
        numbers = WholesaleOrder.objects.filter(order_number__startswith=stem).values_list("order_number", flat=True)
        return max((int(n[len(stem):]) for n in numbers if n[len(stem):].isdigit()), default=0)

    sequence = NumberSequence.next_value(f"{prefix}-{year}", seed=seed)
    return f"{stem}{sequence:04d}"


def get_order(order_id):
    try:
        return (
            WholesaleOrder.objects.select_related(*ORDER_RELATED)
            .prefetch_related(*(f"items__{path}" for path in ITEM_RELATED))
            .get(pk=order_id)
        )
    except (WholesaleOrder.DoesNotExist, ValueError, DjangoValidationError):
        raise ResourceNotFound(f"Order {order_id} not found.")


def _lock_order(order_id):
    try:
        return WholesaleOrder.objects.select_for_update().get(pk=_pk(order_id))
    except WholesaleOrder.DoesNotExist:
        raise ResourceNotFound(f"Order {_pk(order_id)} not found.")


def list_orders(
    *, search=None, dsr=None, route=None, status=None, category=None, brand=None, date_from=None, date_to=None
):
    queryset = WholesaleOrder.objects.select_related(*ORDER_RELATED).annotate(item_count=Count("items"))
    if search:
        queryset = queryset.filter(order_number__icontains=search)
    filters = {
        "dsr_id": dsr,
        "route_id": route,
        "status": status,
        "category_id": category,
        "brand_id": brand,
        "order_date__gte": date_from,
        "order_date__lte": date_to,
    }
    return queryset.filter(**{k: v for k, v in filters.items() if v not in (None, "")})


def ensure_order_edit_allowed(password=None):
    """Run inside the edit's transaction: a one-time unlock is only kept if the edit commits."""
    GlobalSettings.load()
    with transaction.atomic():
        settings_row = GlobalSettings.objects.select_for_update().get(pk=GlobalSettings.SINGLETON_ID)
        unlocked = settings_row.unlock_order_edit(password)
    if not unlocked:
        logger.warning("Rejected order edit: edit lock is active")
        raise OrderEditLocked()


def create_order(*, dsr, route, order_date, items, category=None, brand=None, invoice_note="", created_by=None):
    if not items:
        raise ValidationError({"items": "An order needs at least one item."})

    with transaction.atomic():
        batches = lock_batches(_pk(line["batch"]) for line in items)
        order = WholesaleOrder.objects.create(
            order_number=generate_order_number(),
            dsr=dsr,
            route=route,
            order_date=order_date,
            category=category,
            brand=brand,
            invoice_note=invoice_note or "",
            created_by=created_by if getattr(created_by, "is_authenticated", False) else None,
        )
        WholesaleOrderItem.objects.bulk_create(_allocate(order, items, batches))
        _apply_totals(order)

    logger.info("Created order %s with %d items, total %s", order.order_number, len(items), order.total)
    return get_order(order.pk)


def update_order(order, *, items=None, **header):
    """
    Replace the order header and, when ``items`` is given, the whole item set.

    Reservations of the replaced items go back to their batches before the new
    items reserve, all in one transaction.
    """
    with transaction.atomic():
        order = _lock_order(order)
        for field in ("dsr", "route", "order_date", "category", "brand", "invoice_note"):
            if field in header:
                setattr(order, field, header[field] if field != "invoice_note" else (header[field] or ""))
        order.save()

        if items is not None:
            if not items:
                raise ValidationError({"items": "An order needs at least one item."})
            _ensure_no_returns(order)
            old_items = list(order.items.all())
            batches = lock_batches([item.batch_id for item in old_items] + [_pk(line["batch"]) for line in items])
            for item in old_items:
                _release_item(item, batches[str(item.batch_id)])
            order.items.all().delete()
            WholesaleOrderItem.objects.bulk_create(_allocate(order, items, batches))
            _apply_totals(order)

    logger.info("Updated order %s", order.order_number)
    return get_order(order.pk)


def delete_order(order):
    with transaction.atomic():
        order = _lock_order(order)
        items = list(order.items.all())
        batches = lock_batches([item.batch_id for item in items]) if items else {}
        for item in items:
            _release_item(item, batches[str(item.batch_id)])
        order.delete()
    logger.info("Deleted order %s and released %d items", order.order_number, len(items))


def add_order_item(order, line):
    with transaction.atomic():
        order = _lock_order(order)
        _ensure_no_returns(order)
        batches = lock_batches([_pk(line["batch"])])
        WholesaleOrderItem.objects.bulk_create(_allocate(order, [line], batches))
        _apply_totals(order)
    return get_order(order.pk)


def update_order_item(item, changes):
    with transaction.atomic():
        order = _lock_order(item.order_id)
        _ensure_no_returns(order)
        item = WholesaleOrderItem.objects.get(pk=item.pk)
        line = {
            "product": item.product_id,
            "variant": item.variant_id,
            "batch": item.batch_id,
            "quantity": item.quantity,
            "unit": item.unit,
            "extra_pieces": item.extra_pieces,
            "free_quantity": item.free_quantity,
            "sale_price": item.sale_price,
            "discount": item.discount,
        }
        line.update(changes)
        batches = lock_batches([item.batch_id, _pk(line["batch"])])
        _release_item(item, batches[str(item.batch_id)])
        replacement = _allocate(order, [line], batches)[0]
        for field in ITEM_VALUE_FIELDS:
            setattr(item, field, getattr(replacement, field))
        item.save()
        _apply_totals(order)
    return get_order(order.pk)


def delete_order_item(item):
    with transaction.atomic():
        order = _lock_order(item.order_id)
        _ensure_no_returns(order)
        if order.items.count() <= 1:
            raise InvalidStateTransition("The last item of an order cannot be deleted; delete the order instead.")
        batches = lock_batches([item.batch_id])
        _release_item(item, batches[str(item.batch_id)])
        item.delete()
        _apply_totals(order)
    return get_order(order.pk)


def update_order_status(order, status):
    if status not in OrderStatus.values:
        raise ValidationError({"status": f"Unknown status {status!r}."})
    with transaction.atomic():
        order = _lock_order(order)
        previous = order.status
        order.status = status
        order.save(update_fields=["status", "updated_at"])
    logger.info("Order %s status %s -> %s", order.order_number, previous, status)
    return previous, get_order(order.pk)


def get_overdue_pending_orders(days=None):
    days = settings.PENDING_ORDER_ALERT_DAYS if days is None else int(days)
    cutoff = timezone.localdate() - timedelta(days=days)
    return (
        WholesaleOrder.objects.select_related(*ORDER_RELATED)
        .annotate(item_count=Count("items"))
        .filter(status=OrderStatus.PENDING, order_date__lt=cutoff)
        .order_by("order_date")
    )


def order_totals_match(order):
    items = list(order.items.all())
    return (
        order.subtotal == money_sum(item.subtotal for item in items)
        and order.total == to_money(order.subtotal - order.discount)
        and all(item.net == to_money(item.subtotal - item.discount) for item in items)
    )
