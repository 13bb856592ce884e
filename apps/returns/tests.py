from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import transaction
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import Brand, Product, ProductVariant
from apps.common.exceptions import InvalidStateTransition, OwnershipMismatch
from apps.distribution.models import Dsr
from apps.inventory.models import StockAdjustment
from apps.inventory.services import create_stock_batch, lock_batch, reserve
from apps.returns import services
from apps.returns.models import DamageReturn, ItemCondition, ReturnStatus

User = get_user_model()


class DamageReturnFixtureMixin:
    def make_fixtures(self):
        brand = Brand.objects.create(name="Square")
        product = Product.objects.create(name="Biscuit", brand=brand)
        self.variant = ProductVariant.objects.create(product=product, label="Family pack")
        self.batch = create_stock_batch(variant=self.variant, supplier_price="30.00", sell_price="40.00", quantity=20)
        with transaction.atomic():
            reserve(lock_batch(self.batch.pk), 12)
        self.batch.refresh_from_db()
        self.dsr = Dsr.objects.create(name="Rahim")


class DamageReturnStateTests(DamageReturnFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def create_return(self, **item_overrides):
        item = {"variant": self.variant, "batch": self.batch, "quantity": 3, "condition": ItemCondition.RESELLABLE}
        item.update(item_overrides)
        return services.create_damage_return(return_date=date(2024, 3, 5), dsr=self.dsr, items=[item])

    def test_batch_price_wins_over_caller_price(self):
        damage_return = self.create_return(unit_price=Decimal("99.00"))
        item = damage_return.items.get()
        self.assertEqual(item.unit_price, Decimal("30.00"))
        self.assertEqual(damage_return.total_amount, Decimal("90.00"))
        self.assertEqual(damage_return.status, ReturnStatus.PENDING)

    def test_return_numbers_are_sequential_per_day(self):
        first = self.create_return()
        second = self.create_return()
        other_day = services.create_damage_return(
            return_date=date(2024, 3, 6),
            items=[{"variant": self.variant, "quantity": 1, "unit_price": Decimal("5.00")}],
        )
        self.assertEqual(first.return_number, "RET-20240305-0001")
        self.assertEqual(second.return_number, "RET-20240305-0002")
        self.assertEqual(other_day.return_number, "RET-20240306-0001")
        self.assertEqual(other_day.total_amount, Decimal("5.00"))

    def test_first_number_of_day_continues_after_highest_existing(self):
        DamageReturn.objects.create(return_number="RET-20240307-0001", return_date=date(2024, 3, 7))
        DamageReturn.objects.create(return_number="RET-20240307-0003", return_date=date(2024, 3, 7))

        damage_return = services.create_damage_return(
            return_date=date(2024, 3, 7),
            items=[{"variant": self.variant, "quantity": 1, "unit_price": Decimal("5.00")}],
        )
        self.assertEqual(damage_return.return_number, "RET-20240307-0004")

    def test_approving_resellable_item_restocks_exact_quantity(self):
        damage_return = self.create_return()
        services.approve_damage_return(damage_return)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 8 + 3)
        adjustment = StockAdjustment.objects.get(return_id=damage_return.pk)
        self.assertEqual(adjustment.quantity, 3)

        damage_return.refresh_from_db()
        self.assertEqual(damage_return.status, ReturnStatus.APPROVED)
        self.assertIsNotNone(damage_return.approved_at)

    def test_damaged_item_never_changes_batch(self):
        damage_return = self.create_return(condition=ItemCondition.DAMAGED)
        services.approve_damage_return(damage_return)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 8)
        self.assertFalse(StockAdjustment.objects.exists())

    def test_terminal_states_reject_every_transition(self):
        approved = self.create_return()
        services.approve_damage_return(approved)
        rejected = self.create_return()
        services.reject_damage_return(rejected)

        for damage_return in (approved, rejected):
            with self.assertRaises(InvalidStateTransition):
                services.approve_damage_return(damage_return)
            with self.assertRaises(InvalidStateTransition):
                services.reject_damage_return(damage_return)
            with self.assertRaises(InvalidStateTransition):
                services.delete_damage_return(damage_return)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 11)

    def test_pending_return_can_be_deleted(self):
        damage_return = self.create_return()
        services.delete_damage_return(damage_return)
        self.assertFalse(DamageReturn.objects.exists())

    def test_batch_must_belong_to_variant(self):
        other = ProductVariant.objects.create(product=self.variant.product, label="Mini")
        with self.assertRaises(OwnershipMismatch):
            self.create_return(variant=other)
        self.assertFalse(DamageReturn.objects.exists())


class DamageReturnApiTests(DamageReturnFixtureMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()
        User.objects.create_user(username="manager", password="manager123", role="MANAGER")
        User.objects.create_user(username="staff", password="staff123", role="STAFF")

    def auth(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_staff_creates_but_only_manager_approves(self):
        self.auth("staff", "staff123")
        response = self.client.post(
            "/api/v1/damage-returns/",
            {
                "dsr": self.dsr.id,
                "return_date": "2024-03-05",
                "return_type": "return",
                "items": [{"variant": self.variant.id, "batch": str(self.batch.id), "quantity": 2, "condition": "resellable"}],
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return_id = response.data["id"]
        self.assertEqual(response.data["total_amount"], "60.00")

        response = self.client.post(f"/api/v1/damage-returns/{return_id}/approve/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.auth("manager", "manager123")
        response = self.client.post(f"/api/v1/damage-returns/{return_id}/approve/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "approved")
        self.assertEqual(response.data["approved_by_username"], "manager")

        response = self.client.post(f"/api/v1/damage-returns/{return_id}/reject/")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "invalid_state")

    def test_list_filters_by_status(self):
        services.create_damage_return(
            return_date=date(2024, 3, 5), items=[{"variant": self.variant, "quantity": 1, "unit_price": "5.00"}]
        )
        self.auth("staff", "staff123")
        response = self.client.get("/api/v1/damage-returns/?status=pending")
        self.assertEqual(response.data["count"], 1)
        self.assertNotIn("items", response.data["results"][0])
        response = self.client.get("/api/v1/damage-returns/?status=approved")
        self.assertEqual(response.data["count"], 0)
