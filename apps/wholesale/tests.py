import threading
from datetime import date, timedelta
from decimal import Decimal
from unittest import skipUnless

from django.contrib.auth import get_user_model
from django.db import close_old_connections, connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.catalog.models import Brand, Product, ProductVariant, Unit
from apps.common.exceptions import InsufficientStock, InvalidStateTransition, OwnershipMismatch
from apps.common.models import GlobalSettings, OrderEditLockMode
from apps.distribution.models import Dsr, Route
from apps.inventory.models import StockBatch
from apps.inventory.services import create_stock_batch
from apps.wholesale import services
from apps.wholesale.models import OrderStatus, WholesaleOrder

User = get_user_model()


class OrderFixtureMixin:
    def make_fixtures(self):
        self.brand = Brand.objects.create(name="Pran")
        self.product = Product.objects.create(name="Mango Juice", brand=self.brand)
        self.variant = ProductVariant.objects.create(product=self.product, label="250ml")
        self.batch = create_stock_batch(
            variant=self.variant,
            supplier_price=Decimal("8.00"),
            sell_price=Decimal("10.00"),
            quantity=100,
            free_quantity=10,
        )
        self.dsr = Dsr.objects.create(name="Rahim")
        self.route = Route.objects.create(name="Mirpur")

    def line(self, **overrides):
        line = {
            "product": self.product,
            "variant": self.variant,
            "batch": self.batch,
            "quantity": 5,
            "unit": "BOX",
            "extra_pieces": 2,
            "free_quantity": 3,
            "sale_price": Decimal("10.00"),
            "discount": Decimal("5.00"),
        }
        line.update(overrides)
        return line

    def create_order(self, *lines):
        return services.create_order(
            dsr=self.dsr,
            route=self.route,
            order_date=date(2024, 3, 5),
            items=list(lines) or [self.line()],
        )


class OrderAllocationTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_box_line_pricing_and_batch_decrement(self):
        order = self.create_order()
        item = order.items.get()

        self.assertEqual(item.paid_quantity, 62)
        self.assertEqual(item.subtotal, Decimal("620.00"))
        self.assertEqual(item.net, Decimal("615.00"))
        self.assertEqual(item.total_quantity, 65)
        self.assertEqual(order.subtotal, Decimal("620.00"))
        self.assertEqual(order.discount, Decimal("5.00"))
        self.assertEqual(order.total, Decimal("615.00"))

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 35)
        self.assertEqual(self.batch.remaining_free_qty, 7)

    def test_totals_are_sum_of_item_values(self):
        order = self.create_order(
            self.line(),
            self.line(quantity=1, unit="PCS", extra_pieces=0, free_quantity=0, sale_price=Decimal("9.99"), discount=0),
        )
        self.assertTrue(services.order_totals_match(order))
        self.assertEqual(order.subtotal, Decimal("629.99"))
        self.assertEqual(order.total, Decimal("624.99"))

    def test_registry_unit_overrides_fallback_multiplier(self):
        Unit.objects.create(name="Box", abbreviation="box", multiplier=10)
        order = self.create_order(self.line(extra_pieces=0, free_quantity=0, discount=0))
        self.assertEqual(order.items.get().total_quantity, 50)

    def test_unknown_unit_is_treated_as_base_unit(self):
        order = self.create_order(self.line(unit="SACK", extra_pieces=0, free_quantity=0, discount=0))
        self.assertEqual(order.items.get().total_quantity, 5)

    def test_failed_item_rolls_back_whole_order(self):
        second_variant = ProductVariant.objects.create(product=self.product, label="1L")
        second_batch = create_stock_batch(variant=second_variant, supplier_price="20", sell_price="25", quantity=4)

        with self.assertRaises(InsufficientStock):
            self.create_order(
                self.line(),
                self.line(variant=second_variant, batch=second_batch, quantity=5, unit="PCS", free_quantity=0),
            )

        self.assertFalse(WholesaleOrder.objects.exists())
        self.batch.refresh_from_db()
        second_batch.refresh_from_db()
        self.assertEqual((self.batch.remaining_quantity, self.batch.remaining_free_qty), (100, 10))
        self.assertEqual(second_batch.remaining_quantity, 4)

    def test_batch_of_other_variant_is_rejected(self):
        other_variant = ProductVariant.objects.create(product=self.product, label="1L")
        with self.assertRaises(OwnershipMismatch):
            self.create_order(self.line(variant=other_variant))
        self.assertFalse(WholesaleOrder.objects.exists())

    def test_item_edit_cannot_point_at_product_of_other_variant(self):
        order = self.create_order()
        item = order.items.get()
        other_product = Product.objects.create(name="Orange Juice", brand=self.brand)

        with self.assertRaises(OwnershipMismatch):
            services.update_order_item(item, {"product": other_product})

        item.refresh_from_db()
        self.assertEqual(item.product_id, self.product.pk)
        self.batch.refresh_from_db()
        self.assertEqual((self.batch.remaining_quantity, self.batch.remaining_free_qty), (35, 7))

    def test_added_item_must_match_product_and_batch(self):
        order = self.create_order()
        other_product = Product.objects.create(name="Orange Juice", brand=self.brand)
        other_variant = ProductVariant.objects.create(product=other_product, label="250ml")
        other_batch = create_stock_batch(variant=other_variant, supplier_price="8", sell_price="10", quantity=10)

        with self.assertRaises(OwnershipMismatch):
            services.add_order_item(order, self.line(variant=other_variant, batch=other_batch, free_quantity=0))
        with self.assertRaises(OwnershipMismatch):
            services.add_order_item(order, self.line(free_quantity=0, batch=other_batch))

        self.assertEqual(order.items.count(), 1)
        other_batch.refresh_from_db()
        self.assertEqual(other_batch.remaining_quantity, 10)

    def test_update_with_foreign_batch_keeps_original_items(self):
        order = self.create_order()
        other_variant = ProductVariant.objects.create(product=self.product, label="1L")
        other_batch = create_stock_batch(variant=other_variant, supplier_price="8", sell_price="10", quantity=10)

        with self.assertRaises(OwnershipMismatch):
            services.update_order(order, items=[self.line(batch=other_batch, free_quantity=0)])

        self.assertEqual(order.items.get().total_quantity, 65)
        self.batch.refresh_from_db()
        self.assertEqual((self.batch.remaining_quantity, self.batch.remaining_free_qty), (35, 7))

    def test_order_numbers_are_sequential_per_year(self):
        first = self.create_order(self.line(quantity=1, extra_pieces=0, free_quantity=0, discount=0))
        second = self.create_order(self.line(quantity=1, extra_pieces=0, free_quantity=0, discount=0))
        year = timezone.localdate().year
        self.assertEqual(first.order_number, f"WO-{year}-0001")
        self.assertEqual(second.order_number, f"WO-{year}-0002")

    def test_update_restores_previous_reservations(self):
        order = self.create_order()
        services.update_order(order, items=[self.line(quantity=1, extra_pieces=0, free_quantity=1, discount=0)])
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 100 - 13)
        self.assertEqual(self.batch.remaining_free_qty, 9)

        order.refresh_from_db()
        self.assertEqual(order.total, Decimal("120.00"))

    def test_delete_releases_reservations(self):
        order = self.create_order()
        services.delete_order(order)
        self.batch.refresh_from_db()
        self.assertEqual((self.batch.remaining_quantity, self.batch.remaining_free_qty), (100, 10))
        self.assertFalse(WholesaleOrder.objects.exists())

    def test_item_edits_recompute_totals(self):
        order = self.create_order()
        order = services.add_order_item(order, self.line(quantity=2, unit="PCS", extra_pieces=0, free_quantity=0, discount=0))
        self.assertEqual(order.total, Decimal("635.00"))

        item = order.items.get(quantity=2)
        order = services.update_order_item(item, {"quantity": 4})
        self.assertEqual(order.total, Decimal("655.00"))
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 100 - 65 - 4)

        order = services.delete_order_item(order.items.get(quantity=4))
        self.assertEqual(order.total, Decimal("615.00"))
        with self.assertRaises(InvalidStateTransition):
            services.delete_order_item(order.items.get())

    def test_overdue_pending_orders(self):
        old = self.create_order(self.line(quantity=1, extra_pieces=0, free_quantity=0, discount=0))
        WholesaleOrder.objects.filter(pk=old.pk).update(order_date=timezone.localdate() - timedelta(days=10))
        fresh = services.create_order(
            dsr=self.dsr,
            route=self.route,
            order_date=timezone.localdate(),
            items=[self.line(quantity=1, extra_pieces=0, free_quantity=0, discount=0)],
        )
        overdue = list(services.get_overdue_pending_orders(days=3))
        self.assertEqual([o.pk for o in overdue], [old.pk])

        services.update_order_status(old, OrderStatus.ADJUSTED)
        self.assertFalse(services.get_overdue_pending_orders(days=3).exists())
        self.assertNotIn(fresh.pk, [o.pk for o in overdue])


class OrderApiTests(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.staff = User.objects.create_user(username="staff", password="staff123", role="STAFF")

    def auth(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def payload(self, **item_overrides):
        item = {
            "product": self.product.id,
            "variant": self.variant.id,
            "batch": str(self.batch.id),
            "quantity": 5,
            "unit": "BOX",
            "extra_pieces": 2,
            "free_quantity": 3,
            "sale_price": "10.00",
            "discount": "5.00",
        }
        item.update(item_overrides)
        return {"dsr": self.dsr.id, "route": self.route.id, "order_date": "2024-03-05", "items": [item]}

    def test_create_then_read_back_returns_same_values(self):
        self.auth("staff", "staff123")
        created = self.client.post("/api/v1/orders/", self.payload(), format="json")
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        self.assertEqual(created.data["dsr_name"], "Rahim")
        self.assertEqual(created.data["route_name"], "Mirpur")

        fetched = self.client.get(f"/api/v1/orders/{created.data['id']}/")
        self.assertEqual(fetched.status_code, status.HTTP_200_OK)
        self.assertEqual(fetched.data["total"], created.data["total"])
        self.assertEqual(fetched.data["total"], "615.00")
        self.assertEqual(fetched.data["items"][0]["net"], created.data["items"][0]["net"])
        self.assertEqual(fetched.data["items"][0]["subtotal"], "620.00")
        self.assertEqual(fetched.data["items"][0]["total_quantity"], 65)
        self.assertTrue(AuditLog.objects.filter(entity_type="wholesale_order", action="CREATE").exists())

    def test_insufficient_stock_reports_quantities_and_changes_nothing(self):
        self.auth("staff", "staff123")
        response = self.client.post("/api/v1/orders/", self.payload(quantity=9, free_quantity=0), format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "insufficient_stock")
        self.assertEqual(response.data["fields"]["available"], 100)
        self.assertEqual(response.data["fields"]["requested"], 110)
        self.assertFalse(WholesaleOrder.objects.exists())
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 100)

    def test_list_filters_by_dsr_and_status(self):
        self.auth("staff", "staff123")
        self.client.post("/api/v1/orders/", self.payload(), format="json")
        other_dsr = Dsr.objects.create(name="Karim")

        response = self.client.get(f"/api/v1/orders/?dsr={self.dsr.id}&status=pending")
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["item_count"], 1)

        response = self.client.get(f"/api/v1/orders/?dsr={other_dsr.id}")
        self.assertEqual(response.data["count"], 0)

    def test_edit_lock_requires_password(self):
        self.auth("admin", "admin123")
        created = self.client.post("/api/v1/orders/", self.payload(), format="json")
        response = self.client.put(
            "/api/v1/settings/order-edit-lock/", {"password": "s3cret", "lock_mode": "always"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["requires_password"])

        update = self.payload(quantity=1, extra_pieces=0, free_quantity=0, discount="0")
        response = self.client.put(f"/api/v1/orders/{created.data['id']}/", update, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "order_edit_locked")

        update["edit_password"] = "s3cret"
        response = self.client.put(f"/api/v1/orders/{created.data['id']}/", update, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total"], "120.00")

    def test_patch_with_incomplete_item_is_rejected(self):
        self.auth("staff", "staff123")
        created = self.client.post("/api/v1/orders/", self.payload(), format="json")

        response = self.client.patch(
            f"/api/v1/orders/{created.data['id']}/",
            {"items": [{"product": self.product.id, "variant": self.variant.id, "batch": str(self.batch.id), "quantity": 1}]},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("items", response.data["fields"])
        self.batch.refresh_from_db()
        self.assertEqual((self.batch.remaining_quantity, self.batch.remaining_free_qty), (35, 7))

    def test_patch_header_only_keeps_items(self):
        self.auth("staff", "staff123")
        created = self.client.post("/api/v1/orders/", self.payload(), format="json")

        response = self.client.patch(
            f"/api/v1/orders/{created.data['id']}/", {"invoice_note": "Deliver before noon"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["invoice_note"], "Deliver before noon")
        self.assertEqual(response.data["total"], "615.00")

    def test_failed_edit_does_not_use_up_once_lock(self):
        self.auth("admin", "admin123")
        created = self.client.post("/api/v1/orders/", self.payload(), format="json")
        GlobalSettings.load().set_order_edit_password("s3cret", OrderEditLockMode.ONCE)

        update = self.payload(quantity=9, free_quantity=0)
        update["edit_password"] = "s3cret"
        response = self.client.put(f"/api/v1/orders/{created.data['id']}/", update, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(GlobalSettings.load().order_edit_requires_password())
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 35)

    def test_once_lock_opens_after_first_unlock(self):
        GlobalSettings.load().set_order_edit_password("s3cret", OrderEditLockMode.ONCE)
        self.assertTrue(GlobalSettings.load().order_edit_requires_password())
        services.ensure_order_edit_allowed("s3cret")
        self.assertFalse(GlobalSettings.load().order_edit_requires_password())

    def test_staff_cannot_change_edit_lock(self):
        self.auth("staff", "staff123")
        response = self.client.put(
            "/api/v1/settings/order-edit-lock/", {"password": "x", "lock_mode": "always"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_update_is_audited(self):
        self.auth("staff", "staff123")
        created = self.client.post("/api/v1/orders/", self.payload(), format="json")
        response = self.client.post(f"/api/v1/orders/{created.data['id']}/status/", {"status": "adjusted"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "adjusted")
        self.assertTrue(
            AuditLog.objects.filter(action="STATUS_CHANGE", entity_id=created.data["id"]).exists()
        )

    def test_batch_in_use_cannot_be_deleted(self):
        self.auth("admin", "admin123")
        self.client.post("/api/v1/orders/", self.payload(), format="json")
        response = self.client.delete(f"/api/v1/inventory/batches/{self.batch.id}/")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(StockBatch.objects.filter(pk=self.batch.pk).exists())


@skipUnless(connection.vendor == "postgresql", "row locks need PostgreSQL")
class ConcurrentReservationTests(OrderFixtureMixin, TransactionTestCase):
    def setUp(self):
        self.make_fixtures()

    def test_only_one_of_two_overlapping_orders_succeeds(self):
        barrier = threading.Barrier(2)
        outcomes = []

        def place_order():
            try:
                barrier.wait()
                self.create_order(self.line(quantity=60, unit="PCS", extra_pieces=0, free_quantity=0, discount=0))
                outcomes.append("ok")
            except InsufficientStock:
                outcomes.append("insufficient")
            finally:
                close_old_connections()

        threads = [threading.Thread(target=place_order) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(outcomes), ["insufficient", "ok"])
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 40)
        self.assertEqual(WholesaleOrder.objects.count(), 1)
