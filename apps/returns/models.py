import uuid

from django.db import models
from django.db.models import Q


class ReturnType(models.TextChoices):
    DAMAGE = "damage", "Damage"
    EXPIRED = "expired", "Expired"
    RETURN = "return", "Return"


class ReturnStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class ItemCondition(models.TextChoices):
    RESELLABLE = "resellable", "Resellable"
    DAMAGED = "damaged", "Damaged"


class DamageReturn(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    return_number = models.CharField(max_length=32, unique=True)
    dsr = models.ForeignKey("distribution.Dsr", null=True, blank=True, on_delete=models.PROTECT, related_name="damage_returns")
    return_date = models.DateField()
    return_type = models.CharField(max_length=10, choices=ReturnType.choices, default=ReturnType.DAMAGE)
    status = models.CharField(max_length=10, choices=ReturnStatus.choices, default=ReturnStatus.PENDING)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="damage_returns_created"
    )
    approved_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="damage_returns_approved"
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-return_date", "-created_at"]
        indexes = [
            models.Index(fields=["status", "return_date"], name="return_status_date_idx"),
        ]

    def __str__(self):
        return self.return_number


class DamageReturnItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    damage_return = models.ForeignKey(DamageReturn, on_delete=models.CASCADE, related_name="items")
    variant = models.ForeignKey("catalog.ProductVariant", on_delete=models.PROTECT, related_name="damage_return_items")
    batch = models.ForeignKey(
        "inventory.StockBatch", null=True, blank=True, on_delete=models.PROTECT, related_name="damage_return_items"
    )
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=14, decimal_places=2)
    condition = models.CharField(max_length=12, choices=ItemCondition.choices, default=ItemCondition.DAMAGED)
    reason = models.CharField(max_length=255, blank=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gt=0), name="return_item_quantity_gt_zero"),
            models.CheckConstraint(condition=Q(unit_price__gte=0), name="return_item_price_gte_zero"),
        ]
