import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="StockBatch",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("supplier_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("sell_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("initial_quantity", models.PositiveIntegerField()),
                ("remaining_quantity", models.PositiveIntegerField()),
                ("initial_free_qty", models.PositiveIntegerField(default=0)),
                ("remaining_free_qty", models.PositiveIntegerField(default=0)),
                ("purchase_date", models.DateField(blank=True, null=True)),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "variant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="batches",
                        to="catalog.productvariant",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "verbose_name_plural": "stock batches",
                "indexes": [models.Index(fields=["variant", "created_at"], name="batch_variant_created_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("remaining_quantity__gte", 0),
                            ("remaining_quantity__lte", models.F("initial_quantity")),
                        ),
                        name="batch_remaining_qty_within_initial",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("remaining_free_qty__gte", 0),
                            ("remaining_free_qty__lte", models.F("initial_free_qty")),
                        ),
                        name="batch_remaining_free_within_initial",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("supplier_price__gte", 0)), name="batch_supplier_price_gte_zero"
                    ),
                    models.CheckConstraint(condition=models.Q(("sell_price__gte", 0)), name="batch_sell_price_gte_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockAdjustment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "adjustment_type",
                    models.CharField(
                        choices=[("return_restock", "Return restock"), ("damage", "Damage"), ("manual", "Manual")],
                        max_length=20,
                    ),
                ),
                ("quantity", models.IntegerField()),
                ("free_quantity", models.IntegerField(default=0)),
                ("order_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("return_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "batch",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="adjustments",
                        to="inventory.stockbatch",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stock_adjustments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_adjustments",
                        to="catalog.productvariant",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["variant", "created_at"], name="adjustment_variant_created_idx"),
                    models.Index(fields=["adjustment_type"], name="adjustment_type_idx"),
                ],
            },
        ),
    ]
