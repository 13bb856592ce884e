import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _uuid_pk():
    return ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False))


def _order_fk(related_name):
    return (
        "order",
        models.ForeignKey(
            on_delete=django.db.models.deletion.CASCADE, related_name=related_name, to="wholesale.wholesaleorder"
        ),
    )


def _due_fields():
    return [
        _uuid_pk(),
        ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
        ("collected_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


def _collected_within(prefix):
    return models.CheckConstraint(
        condition=models.Q(("collected_amount__gte", 0), ("collected_amount__lte", models.F("amount"))),
        name=f"{prefix}_collected_within_amount",
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("distribution", "0001_initial"),
        ("wholesale", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="OrderItemReturn",
            fields=[
                _uuid_pk(),
                ("return_quantity", models.PositiveIntegerField(default=0)),
                ("return_unit", models.CharField(default="PCS", max_length=20)),
                ("returned_base_quantity", models.PositiveIntegerField(default=0)),
                ("return_free_quantity", models.PositiveIntegerField(default=0)),
                ("return_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("adjustment_discount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                _order_fk("item_returns"),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="returns",
                        to="wholesale.wholesaleorderitem",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("return_amount__gte", 0)), name="item_return_amount_gte_zero"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("adjustment_discount__gte", 0)), name="item_return_discount_gte_zero"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderPayment",
            fields=[
                _uuid_pk(),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("payment_date", models.DateField()),
                ("method", models.CharField(default="cash", max_length=30)),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="order_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                _order_fk("payments"),
            ],
            options={
                "ordering": ["payment_date", "created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="order_payment_amount_gt_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderExpense",
            fields=[
                _uuid_pk(),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("expense_type", models.CharField(default="other", max_length=50)),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                _order_fk("expenses"),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="order_expense_amount_gt_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderCustomerDue",
            fields=_due_fields()
            + [
                _order_fk("customer_dues"),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="dues", to="distribution.customer"
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "abstract": False,
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="customer_due_amount_gt_zero"),
                    _collected_within("customer_due"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderDsrDue",
            fields=_due_fields()
            + [
                _order_fk("dsr_dues"),
                (
                    "dsr",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="dues", to="distribution.dsr"
                    ),
                ),
            ],
            options={
                "verbose_name": "order DSR due",
                "ordering": ["created_at"],
                "abstract": False,
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="dsr_due_amount_gt_zero"),
                    _collected_within("dsr_due"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DueCollection",
            fields=[
                _uuid_pk(),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("collection_date", models.DateField()),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "collected_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="due_collections",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "customer_due",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="collections",
                        to="settlement.ordercustomerdue",
                    ),
                ),
                (
                    "dsr_due",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="collections",
                        to="settlement.orderdsrdue",
                    ),
                ),
            ],
            options={
                "ordering": ["-collection_date", "-created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="due_collection_amount_gt_zero"),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("customer_due__isnull", False), ("dsr_due__isnull", True)),
                            models.Q(("customer_due__isnull", True), ("dsr_due__isnull", False)),
                            _connector="OR",
                        ),
                        name="due_collection_single_target",
                    ),
                ],
            },
        ),
    ]
