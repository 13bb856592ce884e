import uuid

from django.db import models
from django.db.models import F, Q


class StockBatch(models.Model):
    """
    A purchase lot of one variant.

    Remaining quantities are owned by ``apps.inventory.services``: orders
    reserve from them and adjustments move them, never direct writes.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    variant = models.ForeignKey("catalog.ProductVariant", on_delete=models.PROTECT, related_name="batches")
    supplier_price = models.DecimalField(max_digits=12, decimal_places=2)
    sell_price = models.DecimalField(max_digits=12, decimal_places=2)
    initial_quantity = models.PositiveIntegerField()
    remaining_quantity = models.PositiveIntegerField()
    initial_free_qty = models.PositiveIntegerField(default=0)
    remaining_free_qty = models.PositiveIntegerField(default=0)
    purchase_date = models.DateField(null=True, blank=True)
    note = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "stock batches"
        indexes = [
            models.Index(fields=["variant", "created_at"], name="batch_variant_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(remaining_quantity__gte=0) & Q(remaining_quantity__lte=F("initial_quantity")),
                name="batch_remaining_qty_within_initial",
            ),
            models.CheckConstraint(
                condition=Q(remaining_free_qty__gte=0) & Q(remaining_free_qty__lte=F("initial_free_qty")),
                name="batch_remaining_free_within_initial",
            ),
            models.CheckConstraint(condition=Q(supplier_price__gte=0), name="batch_supplier_price_gte_zero"),
            models.CheckConstraint(condition=Q(sell_price__gte=0), name="batch_sell_price_gte_zero"),
        ]

    def __str__(self):
        return f"{self.variant} @ {self.sell_price} ({self.remaining_quantity}/{self.initial_quantity})"


class AdjustmentType(models.TextChoices):
    RETURN_RESTOCK = "return_restock", "Return restock"
    DAMAGE = "damage", "Damage"
    MANUAL = "manual", "Manual"


class StockAdjustment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    batch = models.ForeignKey(StockBatch, null=True, blank=True, on_delete=models.PROTECT, related_name="adjustments")
    variant = models.ForeignKey("catalog.ProductVariant", on_delete=models.PROTECT, related_name="stock_adjustments")
    adjustment_type = models.CharField(max_length=20, choices=AdjustmentType.choices)
    quantity = models.IntegerField()
    free_quantity = models.IntegerField(default=0)
    order_id = models.UUIDField(null=True, blank=True, db_index=True)
    return_id = models.UUIDField(null=True, blank=True, db_index=True)
    note = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="stock_adjustments"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["variant", "created_at"], name="adjustment_variant_created_idx"),
            models.Index(fields=["adjustment_type"], name="adjustment_type_idx"),
        ]
