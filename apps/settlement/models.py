import uuid

from django.db import models
from django.db.models import F, Q


class OrderItemReturn(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey("wholesale.WholesaleOrder", on_delete=models.CASCADE, related_name="item_returns")
    item = models.ForeignKey("wholesale.WholesaleOrderItem", on_delete=models.CASCADE, related_name="returns")
    return_quantity = models.PositiveIntegerField(default=0)
    return_unit = models.CharField(max_length=20, default="PCS")
    returned_base_quantity = models.PositiveIntegerField(default=0)
    return_free_quantity = models.PositiveIntegerField(default=0)
    return_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    adjustment_discount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(condition=Q(return_amount__gte=0), name="item_return_amount_gte_zero"),
            models.CheckConstraint(condition=Q(adjustment_discount__gte=0), name="item_return_discount_gte_zero"),
        ]


class OrderPayment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey("wholesale.WholesaleOrder", on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    payment_date = models.DateField()
    method = models.CharField(max_length=30, default="cash")
    note = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="order_payments"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["payment_date", "created_at"]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="order_payment_amount_gt_zero"),
        ]


class OrderExpense(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey("wholesale.WholesaleOrder", on_delete=models.CASCADE, related_name="expenses")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    expense_type = models.CharField(max_length=50, default="other")
    note = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="order_expense_amount_gt_zero"),
        ]


class DueBase(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    collected_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["created_at"]

    @property
    def outstanding(self):
        return self.amount - self.collected_amount


class OrderCustomerDue(DueBase):
    order = models.ForeignKey("wholesale.WholesaleOrder", on_delete=models.CASCADE, related_name="customer_dues")
    customer = models.ForeignKey("distribution.Customer", on_delete=models.PROTECT, related_name="dues")

    class Meta(DueBase.Meta):
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="customer_due_amount_gt_zero"),
            models.CheckConstraint(
                condition=Q(collected_amount__gte=0) & Q(collected_amount__lte=F("amount")),
                name="customer_due_collected_within_amount",
            ),
        ]


class OrderDsrDue(DueBase):
    order = models.ForeignKey("wholesale.WholesaleOrder", on_delete=models.CASCADE, related_name="dsr_dues")
    dsr = models.ForeignKey("distribution.Dsr", on_delete=models.PROTECT, related_name="dues")

    class Meta(DueBase.Meta):
        verbose_name = "order DSR due"
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="dsr_due_amount_gt_zero"),
            models.CheckConstraint(
                condition=Q(collected_amount__gte=0) & Q(collected_amount__lte=F("amount")),
                name="dsr_due_collected_within_amount",
            ),
        ]


class DueCollection(models.Model):
    """Cash collected against exactly one customer or DSR due."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer_due = models.ForeignKey(
        OrderCustomerDue, null=True, blank=True, on_delete=models.CASCADE, related_name="collections"
    )
    dsr_due = models.ForeignKey(OrderDsrDue, null=True, blank=True, on_delete=models.CASCADE, related_name="collections")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    collection_date = models.DateField()
    note = models.CharField(max_length=255, blank=True)
    collected_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="due_collections"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-collection_date", "-created_at"]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="due_collection_amount_gt_zero"),
            models.CheckConstraint(
                condition=(Q(customer_due__isnull=False) & Q(dsr_due__isnull=True))
                | (Q(customer_due__isnull=True) & Q(dsr_due__isnull=False)),
                name="due_collection_single_target",
            ),
        ]
