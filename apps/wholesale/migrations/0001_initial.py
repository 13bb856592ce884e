import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        ("distribution", "0001_initial"),
        ("inventory", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="WholesaleOrder",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_number", models.CharField(max_length=32, unique=True)),
                ("order_date", models.DateField()),
                ("invoice_note", models.TextField(blank=True)),
                ("subtotal", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("discount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("total", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("paid_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("unpaid", "Unpaid"), ("partial", "Partial"), ("paid", "Paid")],
                        default="unpaid",
                        max_length=10,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("adjusted", "Adjusted")], default="pending", max_length=10
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "brand",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="catalog.brand",
                    ),
                ),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="catalog.category",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="wholesale_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "dsr",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="orders", to="distribution.dsr"
                    ),
                ),
                (
                    "route",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="orders", to="distribution.route"
                    ),
                ),
            ],
            options={
                "ordering": ["-order_date", "-created_at"],
                "indexes": [
                    models.Index(fields=["status", "order_date"], name="order_status_date_idx"),
                    models.Index(fields=["dsr", "order_date"], name="order_dsr_date_idx"),
                    models.Index(fields=["route", "order_date"], name="order_route_date_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("subtotal__gte", 0)), name="order_subtotal_gte_zero"),
                    models.CheckConstraint(condition=models.Q(("discount__gte", 0)), name="order_discount_gte_zero"),
                    models.CheckConstraint(
                        condition=models.Q(("paid_amount__gte", 0)), name="order_paid_amount_gte_zero"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WholesaleOrderItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity", models.PositiveIntegerField(default=0)),
                ("unit", models.CharField(default="PCS", max_length=20)),
                ("extra_pieces", models.PositiveIntegerField(default=0)),
                ("free_quantity", models.PositiveIntegerField(default=0)),
                ("total_quantity", models.PositiveIntegerField(default=0)),
                ("sale_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("discount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=14)),
                ("net", models.DecimalField(decimal_places=2, max_digits=14)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="inventory.stockbatch",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="wholesale.wholesaleorder",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="order_items", to="catalog.product"
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="catalog.productvariant",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["product"], name="orderitem_product_idx"),
                    models.Index(fields=["batch"], name="orderitem_batch_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("sale_price__gte", 0)), name="orderitem_sale_price_gte_zero"
                    ),
                    models.CheckConstraint(condition=models.Q(("discount__gte", 0)), name="orderitem_discount_gte_zero"),
                ],
            },
        ),
    ]
