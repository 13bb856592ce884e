"""
Stock batch ledger and the adjustment recorder.

Batch quantities change only through this module: orders call ``reserve`` and
``release`` while they allocate, every other movement goes through
``record_adjustment`` so it leaves a ``StockAdjustment`` row behind.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.catalog.models import ProductVariant
from apps.common.exceptions import InsufficientStock, InvalidStateTransition, OwnershipMismatch, ResourceNotFound
from apps.common.money import to_money
from apps.inventory.models import StockAdjustment, StockBatch
from apps.suppliers.models import SupplierPurchase

logger = logging.getLogger(__name__)


def _require_transaction():
    if not transaction.get_connection().in_atomic_block:
        raise transaction.TransactionManagementError("Batch quantities can only change inside a transaction.")


def get_batch(batch_id):
    try:
        return StockBatch.objects.select_related("variant__product").get(pk=batch_id)
    except (StockBatch.DoesNotExist, ValueError, DjangoValidationError):
        raise ResourceNotFound(f"Stock batch {batch_id} not found.")


def lock_batch(batch_id):
    _require_transaction()
    try:
        return StockBatch.objects.select_for_update().get(pk=batch_id)
    except (StockBatch.DoesNotExist, ValueError, DjangoValidationError):
        raise ResourceNotFound(f"Stock batch {batch_id} not found.")


def lock_batches(batch_ids):
    """Lock several batches in primary key order so concurrent orders cannot deadlock."""
    _require_transaction()
    unique_ids = sorted({str(batch_id) for batch_id in batch_ids})
    batches = {str(b.pk): b for b in StockBatch.objects.select_for_update().filter(pk__in=unique_ids).order_by("pk")}
    missing = [batch_id for batch_id in unique_ids if batch_id not in batches]
    if missing:
        raise ResourceNotFound(f"Stock batch {missing[0]} not found.")
    return batches


def ensure_batch_belongs(batch, variant_id):
    if str(batch.variant_id) != str(variant_id):
        logger.warning("Batch %s does not belong to variant %s", batch.pk, variant_id)
        raise OwnershipMismatch(f"Batch {batch.pk} does not belong to variant {variant_id}.")


def check_available(batch, quantity, free_quantity=0):
    if quantity > batch.remaining_quantity:
        logger.warning(
            "Insufficient stock in batch %s: available %s, requested %s", batch.pk, batch.remaining_quantity, quantity
        )
        raise InsufficientStock(batch_id=str(batch.pk), available=batch.remaining_quantity, requested=quantity)
    if free_quantity > batch.remaining_free_qty:
        logger.warning(
            "Insufficient free stock in batch %s: available %s, requested %s",
            batch.pk,
            batch.remaining_free_qty,
            free_quantity,
        )
        raise InsufficientStock(
            batch_id=str(batch.pk),
            available=batch.remaining_free_qty,
            requested=free_quantity,
            field="free_quantity",
        )


def _apply_delta(batch, delta_quantity, delta_free):
    if delta_quantity < 0 or delta_free < 0:
        check_available(batch, max(-delta_quantity, 0), max(-delta_free, 0))

    new_quantity = batch.remaining_quantity + delta_quantity
    new_free = batch.remaining_free_qty + delta_free
    if new_quantity > batch.initial_quantity or new_free > batch.initial_free_qty:
        raise ValidationError(
            {
                "quantity": (
                    f"Batch {batch.pk} cannot hold more than it was received with "
                    f"({batch.initial_quantity} + {batch.initial_free_qty} free)."
                )
            }
        )

    batch.remaining_quantity = new_quantity
    batch.remaining_free_qty = new_free
    batch.save(update_fields=["remaining_quantity", "remaining_free_qty", "updated_at"])
    return batch


def reserve(batch, quantity, free_quantity=0):
    """
    Take ``quantity`` base units (paid plus free) and ``free_quantity`` of the
    free allowance out of a locked batch.

    Raises ``InsufficientStock`` and leaves the batch untouched when either
    field would go negative.
    """
    _require_transaction()
    return _apply_delta(batch, -int(quantity), -int(free_quantity or 0))


def release(batch, quantity, free_quantity=0):
    _require_transaction()
    return _apply_delta(batch, int(quantity), int(free_quantity or 0))


def record_adjustment(
    *,
    variant,
    adjustment_type,
    quantity,
    free_quantity=0,
    batch=None,
    order_id=None,
    return_id=None,
    note="",
    created_by=None,
):
    variant_id = variant.pk if isinstance(variant, ProductVariant) else variant
    if not ProductVariant.objects.filter(pk=variant_id).exists():
        raise ResourceNotFound(f"Variant {variant_id} not found.")

    with transaction.atomic():
        locked = None
        if batch is not None:
            locked = lock_batch(batch.pk if isinstance(batch, StockBatch) else batch)
            ensure_batch_belongs(locked, variant_id)
            _apply_delta(locked, int(quantity), int(free_quantity or 0))

        adjustment = StockAdjustment.objects.create(
            batch=locked,
            variant_id=variant_id,
            adjustment_type=adjustment_type,
            quantity=int(quantity),
            free_quantity=int(free_quantity or 0),
            order_id=order_id,
            return_id=return_id,
            note=note or "",
            created_by=created_by if getattr(created_by, "is_authenticated", False) else None,
        )

    logger.info(
        "Recorded %s adjustment %s on variant %s batch %s: %+d (%+d free)",
        adjustment_type,
        adjustment.pk,
        variant_id,
        locked.pk if locked else None,
        adjustment.quantity,
        adjustment.free_quantity,
    )
    return adjustment


def create_stock_batch(
    *,
    variant,
    supplier_price,
    sell_price,
    quantity,
    free_quantity=0,
    supplier=None,
    purchase_date=None,
    note="",
):
    with transaction.atomic():
        batch = StockBatch.objects.create(
            variant=variant,
            supplier_price=to_money(supplier_price),
            sell_price=to_money(sell_price),
            initial_quantity=int(quantity),
            remaining_quantity=int(quantity),
            initial_free_qty=int(free_quantity or 0),
            remaining_free_qty=int(free_quantity or 0),
            purchase_date=purchase_date,
            note=note or "",
        )
        if supplier is not None:
            SupplierPurchase.objects.create(
                supplier=supplier,
                batch=batch,
                amount=to_money(batch.supplier_price * batch.initial_quantity),
                purchase_date=purchase_date or timezone.localdate(),
                description=f"Stock intake: {variant}",
            )

    logger.info("Received batch %s for variant %s: %s + %s free", batch.pk, variant.pk, quantity, free_quantity)
    return batch


def update_stock_batch(batch_id, **changes):
    """
    Change prices, notes or received quantities of a batch.

    A new initial quantity moves the remaining quantity by the same delta, so
    what was already allocated stays allocated.
    """
    with transaction.atomic():
        batch = lock_batch(batch_id)

        for field in ("supplier_price", "sell_price"):
            if changes.get(field) is not None:
                setattr(batch, field, to_money(changes[field]))
        if "purchase_date" in changes:
            batch.purchase_date = changes["purchase_date"]
        if "note" in changes:
            batch.note = changes["note"] or ""

        for initial_field, remaining_field in (
            ("initial_quantity", "remaining_quantity"),
            ("initial_free_qty", "remaining_free_qty"),
        ):
            new_initial = changes.get(initial_field)
            if new_initial is None:
                continue
            delta = int(new_initial) - getattr(batch, initial_field)
            new_remaining = getattr(batch, remaining_field) + delta
            if new_remaining < 0:
                allocated = getattr(batch, initial_field) - getattr(batch, remaining_field)
                raise ValidationError(
                    {initial_field: f"Cannot go below the {allocated} units already allocated from this batch."}
                )
            setattr(batch, initial_field, int(new_initial))
            setattr(batch, remaining_field, new_remaining)

        batch.save()

        purchase = SupplierPurchase.objects.filter(batch=batch).first()
        if purchase is not None:
            purchase.amount = to_money(batch.supplier_price * batch.initial_quantity)
            purchase.save(update_fields=["amount"])

    return batch


def delete_stock_batch(batch_id):
    with transaction.atomic():
        batch = lock_batch(batch_id)
        if batch.order_items.exists():
            raise InvalidStateTransition("Batch is referenced by order items and cannot be deleted.")
        if batch.adjustments.exists():
            raise InvalidStateTransition("Batch has recorded stock adjustments and cannot be deleted.")
        if batch.damage_return_items.exists():
            raise InvalidStateTransition("Batch is referenced by damage returns and cannot be deleted.")
        SupplierPurchase.objects.filter(batch=batch).delete()
        batch.delete()
    logger.info("Deleted batch %s", batch_id)


def list_batches_for_variant(variant_id):
    return StockBatch.objects.filter(variant_id=variant_id).select_related("variant__product").order_by("-created_at")
