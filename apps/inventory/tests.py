from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import transaction
from django.test import TestCase
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Brand, Product, ProductVariant
from apps.common.exceptions import InsufficientStock, InvalidStateTransition, OwnershipMismatch
from apps.inventory import services
from apps.inventory.models import AdjustmentType, StockAdjustment, StockBatch
from apps.suppliers.models import Supplier, SupplierPurchase

User = get_user_model()


def make_variant(name="Mango Juice", label="500ml"):
    brand, _ = Brand.objects.get_or_create(name="Pran")
    product = Product.objects.create(name=name, brand=brand)
    return ProductVariant.objects.create(product=product, label=label)


class StockBatchLedgerTests(TestCase):
    def setUp(self):
        self.variant = make_variant()
        self.batch = services.create_stock_batch(
            variant=self.variant,
            supplier_price=Decimal("8.00"),
            sell_price=Decimal("10.00"),
            quantity=100,
            free_quantity=10,
        )

    def test_create_batch_starts_with_remaining_equal_to_initial(self):
        self.assertEqual(self.batch.remaining_quantity, 100)
        self.assertEqual(self.batch.remaining_free_qty, 10)

    def test_reserve_takes_total_and_free_quantities(self):
        with transaction.atomic():
            batch = services.lock_batch(self.batch.pk)
            services.reserve(batch, 65, 3)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 35)
        self.assertEqual(self.batch.remaining_free_qty, 7)

    def test_reserve_beyond_remaining_fails_and_leaves_batch_unchanged(self):
        with self.assertRaises(InsufficientStock) as ctx:
            with transaction.atomic():
                batch = services.lock_batch(self.batch.pk)
                services.reserve(batch, 101, 0)
        self.assertEqual(ctx.exception.available, 100)
        self.assertEqual(ctx.exception.requested, 101)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 100)
        self.assertEqual(self.batch.remaining_free_qty, 10)

    def test_reserve_beyond_free_allowance_reports_free_field(self):
        with self.assertRaises(InsufficientStock) as ctx:
            with transaction.atomic():
                services.reserve(services.lock_batch(self.batch.pk), 20, 11)
        self.assertEqual(ctx.exception.field, "free_quantity")
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 100)

    def test_release_cannot_exceed_initial_quantity(self):
        with self.assertRaises(ValidationError):
            with transaction.atomic():
                services.release(services.lock_batch(self.batch.pk), 1, 0)

    def test_negative_adjustment_is_checked_and_logged(self):
        adjustment = services.record_adjustment(
            variant=self.variant,
            batch=self.batch,
            adjustment_type=AdjustmentType.DAMAGE,
            quantity=-4,
            note="Crushed cartons",
        )
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 96)
        self.assertEqual(adjustment.quantity, -4)
        self.assertEqual(StockAdjustment.objects.filter(batch=self.batch).count(), 1)

        with self.assertRaises(InsufficientStock):
            services.record_adjustment(
                variant=self.variant, batch=self.batch, adjustment_type=AdjustmentType.MANUAL, quantity=-97
            )
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 96)
        self.assertEqual(StockAdjustment.objects.filter(batch=self.batch).count(), 1)

    def test_adjustment_rejects_batch_of_another_variant(self):
        other = make_variant(name="Orange Juice")
        with self.assertRaises(OwnershipMismatch):
            services.record_adjustment(variant=other, batch=self.batch, adjustment_type=AdjustmentType.MANUAL, quantity=-1)
        self.assertFalse(StockAdjustment.objects.exists())

    def test_invariant_holds_after_sequence_of_changes(self):
        with transaction.atomic():
            services.reserve(services.lock_batch(self.batch.pk), 40, 5)
        services.record_adjustment(
            variant=self.variant, batch=self.batch, adjustment_type=AdjustmentType.RETURN_RESTOCK, quantity=10, free_quantity=2
        )
        services.record_adjustment(
            variant=self.variant, batch=self.batch, adjustment_type=AdjustmentType.MANUAL, quantity=-30, free_quantity=-7
        )
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 40)
        self.assertEqual(self.batch.remaining_free_qty, 0)
        self.assertEqual(StockAdjustment.objects.filter(batch=self.batch).count(), 2)
        self.assertTrue(0 <= self.batch.remaining_quantity <= self.batch.initial_quantity)
        self.assertTrue(0 <= self.batch.remaining_free_qty <= self.batch.initial_free_qty)

    def test_update_initial_quantity_moves_remaining_by_same_delta(self):
        with transaction.atomic():
            services.reserve(services.lock_batch(self.batch.pk), 30, 0)
        batch = services.update_stock_batch(self.batch.pk, initial_quantity=80, sell_price="11.50")
        self.assertEqual(batch.remaining_quantity, 50)
        self.assertEqual(batch.sell_price, Decimal("11.50"))

        with self.assertRaises(ValidationError):
            services.update_stock_batch(self.batch.pk, initial_quantity=20)

    def test_batches_for_variant_newest_first(self):
        newer = services.create_stock_batch(variant=self.variant, supplier_price="9", sell_price="12", quantity=5)
        make_variant(name="Orange Juice")

        self.assertEqual(list(services.list_batches_for_variant(self.variant.pk)), [newer, self.batch])

    def test_delete_is_refused_once_batch_has_adjustments(self):
        services.record_adjustment(
            variant=self.variant, batch=self.batch, adjustment_type=AdjustmentType.DAMAGE, quantity=-1
        )
        with self.assertRaises(InvalidStateTransition):
            services.delete_stock_batch(self.batch.pk)

        spare = services.create_stock_batch(variant=self.variant, supplier_price="9", sell_price="12", quantity=5)
        services.delete_stock_batch(spare.pk)
        self.assertFalse(StockBatch.objects.filter(pk=spare.pk).exists())


class StockBatchApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.staff = User.objects.create_user(username="staff", password="staff123", role="STAFF")
        self.variant = make_variant()
        self.supplier = Supplier.objects.create(code="SUP-1", name="Pran Foods")

    def auth(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_stock_intake_writes_supplier_purchase(self):
        self.auth("admin", "admin123")
        response = self.client.post(
            "/api/v1/inventory/batches/",
            {
                "variant": self.variant.id,
                "supplier": str(self.supplier.id),
                "supplier_price": "8.00",
                "sell_price": "10.00",
                "initial_quantity": 50,
                "initial_free_qty": 5,
                "purchase_date": "2024-03-01",
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["remaining_quantity"], 50)
        self.assertEqual(response.data["supplier_name"], "Pran Foods")

        purchase = SupplierPurchase.objects.get(batch_id=response.data["id"])
        self.assertEqual(purchase.amount, Decimal("400.00"))
        self.assertTrue(AuditLog.objects.filter(entity_type="stock_batch", entity_id=response.data["id"]).exists())

    def test_staff_can_list_but_not_adjust(self):
        batch = services.create_stock_batch(
            variant=self.variant, supplier_price="8.00", sell_price="10.00", quantity=10
        )
        self.auth("staff", "staff123")
        response = self.client.get(f"/api/v1/inventory/batches/?variant={self.variant.id}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)

        response = self.client.post(
            "/api/v1/inventory/adjustments/",
            {"variant": self.variant.id, "batch": str(batch.id), "adjustment_type": "damage", "quantity": -1},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_adjustment_reports_available_and_requested(self):
        batch = services.create_stock_batch(
            variant=self.variant, supplier_price="8.00", sell_price="10.00", quantity=10
        )
        self.auth("admin", "admin123")
        response = self.client.post(
            "/api/v1/inventory/adjustments/",
            {"variant": self.variant.id, "batch": str(batch.id), "adjustment_type": "damage", "quantity": -12},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["code"], "insufficient_stock")
        self.assertEqual(response.data["fields"]["available"], 10)
        self.assertEqual(response.data["fields"]["requested"], 12)
        batch.refresh_from_db()
        self.assertEqual(batch.remaining_quantity, 10)

    def test_stock_summary_groups_by_variant(self):
        services.create_stock_batch(variant=self.variant, supplier_price="8", sell_price="10", quantity=10, free_quantity=1)
        services.create_stock_batch(variant=self.variant, supplier_price="8", sell_price="10", quantity=5)
        self.auth("staff", "staff123")
        response = self.client.get("/api/v1/inventory/stocks/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]["remaining_quantity"], 15)
        self.assertEqual(response.data[0]["remaining_free_qty"], 1)
        self.assertEqual(response.data[0]["batches"], 2)
        self.assertEqual(StockBatch.objects.count(), 2)
