import uuid

from django.db import models
from django.db.models import Q


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ADJUSTED = "adjusted", "Adjusted"


class PaymentStatus(models.TextChoices):
    UNPAID = "unpaid", "Unpaid"
    PARTIAL = "partial", "Partial"
    PAID = "paid", "Paid"


def payment_status_for(paid_amount, amount_due):
    if paid_amount <= 0:
        return PaymentStatus.UNPAID
    if paid_amount >= amount_due:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


class WholesaleOrder(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=32, unique=True)
    dsr = models.ForeignKey("distribution.Dsr", on_delete=models.PROTECT, related_name="orders")
    route = models.ForeignKey("distribution.Route", on_delete=models.PROTECT, related_name="orders")
    category = models.ForeignKey("catalog.Category", null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    brand = models.ForeignKey("catalog.Brand", null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    order_date = models.DateField()
    invoice_note = models.TextField(blank=True)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    paid_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID)
    status = models.CharField(max_length=10, choices=OrderStatus.choices, default=OrderStatus.PENDING)
    created_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="wholesale_orders"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-order_date", "-created_at"]
        indexes = [
            models.Index(fields=["status", "order_date"], name="order_status_date_idx"),
            models.Index(fields=["dsr", "order_date"], name="order_dsr_date_idx"),
            models.Index(fields=["route", "order_date"], name="order_route_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(subtotal__gte=0), name="order_subtotal_gte_zero"),
            models.CheckConstraint(condition=Q(discount__gte=0), name="order_discount_gte_zero"),
            models.CheckConstraint(condition=Q(paid_amount__gte=0), name="order_paid_amount_gte_zero"),
        ]

    def __str__(self):
        return self.order_number


class WholesaleOrderItem(models.Model):
    """
    One order line bound to exactly one batch.

    ``sale_price`` is the price agreed on the order and never follows later
    batch price changes.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(WholesaleOrder, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT, related_name="order_items")
    variant = models.ForeignKey("catalog.ProductVariant", on_delete=models.PROTECT, related_name="order_items")
    batch = models.ForeignKey("inventory.StockBatch", on_delete=models.PROTECT, related_name="order_items")
    quantity = models.PositiveIntegerField(default=0)
    unit = models.CharField(max_length=20, default="PCS")
    extra_pieces = models.PositiveIntegerField(default=0)
    free_quantity = models.PositiveIntegerField(default=0)
    total_quantity = models.PositiveIntegerField(default=0)
    sale_price = models.DecimalField(max_digits=12, decimal_places=2)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2)
    net = models.DecimalField(max_digits=14, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["product"], name="orderitem_product_idx"),
            models.Index(fields=["batch"], name="orderitem_batch_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(sale_price__gte=0), name="orderitem_sale_price_gte_zero"),
            models.CheckConstraint(condition=Q(discount__gte=0), name="orderitem_discount_gte_zero"),
        ]

    @property
    def paid_quantity(self):
        return self.total_quantity - self.free_quantity
