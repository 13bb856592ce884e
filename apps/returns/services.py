"""Damage return workflow: pending returns are approved or rejected exactly once."""

import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.common.exceptions import InvalidStateTransition, ResourceNotFound
from apps.common.models import NumberSequence
from apps.common.money import money_sum, to_money
from apps.inventory.models import AdjustmentType
from apps.inventory.services import ensure_batch_belongs, record_adjustment
from apps.returns.models import DamageReturn, DamageReturnItem, ItemCondition, ReturnStatus

logger = logging.getLogger(__name__)


def generate_return_number(return_date):
    prefix = settings.RETURN_NUMBER_PREFIX
    stem = f"{prefix}-{return_date:%Y%m%d}-"

    def seed():
        numbers = DamageReturn.objects.filter(return_number__startswith=stem).values_list("return_number", flat=True)
        return max((int(n[len(stem):]) for n in numbers if n[len(stem):].isdigit()), default=0)

    sequence = NumberSequence.next_value(stem.rstrip("-"), seed=seed)
    return f"{stem}{sequence:04d}"


def get_damage_return(return_id):
    try:
        return DamageReturn.objects.select_related("dsr", "created_by", "approved_by").prefetch_related(
            "items__variant__product", "items__batch"
        ).get(pk=getattr(return_id, "pk", return_id))
    except DamageReturn.DoesNotExist:
        raise ResourceNotFound(f"Damage return {getattr(return_id, 'pk', return_id)} not found.")


def _lock_pending(return_id, action):
    try:
        damage_return = DamageReturn.objects.select_for_update().get(pk=getattr(return_id, "pk", return_id))
    except DamageReturn.DoesNotExist:
        raise ResourceNotFound(f"Damage return {getattr(return_id, 'pk', return_id)} not found.")
    if damage_return.status != ReturnStatus.PENDING:
        logger.warning("Cannot %s damage return %s in status %s", action, damage_return.return_number, damage_return.status)
        raise InvalidStateTransition(f"Cannot {action} a return that is {damage_return.status}; only pending returns can change.")
    return damage_return


def create_damage_return(*, return_date, items, dsr=None, return_type="damage", notes="", created_by=None):
    """
    Record a pending return.

    Lines linked to a batch are valued at the batch's supplier price, the
    caller's unit price only applies to lines without a batch.
    """
    if not items:
        raise ValidationError({"items": "A return needs at least one item."})

    with transaction.atomic():
        damage_return = DamageReturn.objects.create(
            return_number=generate_return_number(return_date),
            dsr=dsr,
            return_date=return_date,
            return_type=return_type,
            notes=notes or "",
            created_by=created_by if getattr(created_by, "is_authenticated", False) else None,
        )
        lines = []
        for entry in items:
            batch = entry.get("batch")
            if batch is not None:
                ensure_batch_belongs(batch, getattr(entry["variant"], "pk", entry["variant"]))
                unit_price = batch.supplier_price
            elif entry.get("unit_price") is not None:
                unit_price = to_money(entry["unit_price"])
            else:
                raise ValidationError({"items": "unit_price is required for items without a batch."})
            lines.append(
                DamageReturnItem(
                    damage_return=damage_return,
                    variant=entry["variant"],
                    batch=batch,
                    quantity=int(entry["quantity"]),
                    unit_price=unit_price,
                    total=to_money(unit_price * int(entry["quantity"])),
                    condition=entry.get("condition") or ItemCondition.DAMAGED,
                    reason=entry.get("reason", ""),
                )
            )
        DamageReturnItem.objects.bulk_create(lines)
        damage_return.total_amount = money_sum(line.total for line in lines)
        damage_return.save(update_fields=["total_amount", "updated_at"])

    logger.info("Created damage return %s, total %s", damage_return.return_number, damage_return.total_amount)
    return get_damage_return(damage_return.pk)


def approve_damage_return(return_id, *, approved_by=None):
    with transaction.atomic():
        damage_return = _lock_pending(return_id, "approve")
        restocked = 0
        for item in damage_return.items.all():
            if item.condition != ItemCondition.RESELLABLE or item.batch_id is None:
                continue
            record_adjustment(
                variant=item.variant_id,
                batch=item.batch_id,
                adjustment_type=AdjustmentType.RETURN_RESTOCK,
                quantity=item.quantity,
                return_id=damage_return.pk,
                note=f"Approved return {damage_return.return_number}",
                created_by=approved_by,
            )
            restocked += item.quantity

        damage_return.status = ReturnStatus.APPROVED
        damage_return.approved_by = approved_by if getattr(approved_by, "is_authenticated", False) else None
        damage_return.approved_at = timezone.now()
        damage_return.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])

    logger.info("Approved damage return %s, restocked %d units", damage_return.return_number, restocked)
    return get_damage_return(damage_return.pk)


def reject_damage_return(return_id, *, rejected_by=None):
    with transaction.atomic():
        damage_return = _lock_pending(return_id, "reject")
        damage_return.status = ReturnStatus.REJECTED
        damage_return.save(update_fields=["status", "updated_at"])
    logger.info("Rejected damage return %s", damage_return.return_number)
    return get_damage_return(damage_return.pk)


def delete_damage_return(return_id):
    with transaction.atomic():
        damage_return = _lock_pending(return_id, "delete")
        number = damage_return.return_number
        damage_return.delete()
    logger.info("Deleted damage return %s", number)


def list_damage_returns(*, dsr=None, status=None, return_type=None, date_from=None, date_to=None):
    filters = {
        "dsr_id": dsr,
        "status": status,
        "return_type": return_type,
        "return_date__gte": date_from,
        "return_date__lte": date_to,
    }
    return DamageReturn.objects.select_related("dsr", "created_by", "approved_by").filter(
        **{k: v for k, v in filters.items() if v not in (None, "")}
    )
