from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from apps.catalog.models import Brand, Product, ProductVariant
from apps.common.exceptions import InvalidStateTransition
from apps.distribution.models import Customer, Dsr, Route
from apps.inventory.models import AdjustmentType, StockAdjustment
from apps.inventory.services import create_stock_batch
from apps.settlement import services
from apps.settlement.models import DueCollection, OrderDsrDue, OrderPayment
from apps.wholesale.models import OrderStatus, PaymentStatus
from apps.wholesale.services import create_order

User = get_user_model()


class SettlementFixtureMixin:
    def make_fixtures(self):
        brand = Brand.objects.create(name="ACI")
        self.product = Product.objects.create(name="Soap", brand=brand)
        self.variant = ProductVariant.objects.create(product=self.product, label="100g")
        self.batch = create_stock_batch(
            variant=self.variant, supplier_price="7.00", sell_price="10.00", quantity=100, free_quantity=10
        )
        self.dsr = Dsr.objects.create(name="Rahim")
        self.route = Route.objects.create(name="Mirpur")
        self.customer = Customer.objects.create(name="Karim", shop_name="Karim Store", route=self.route)

    def place_order(self, quantity=50, free_quantity=0, order_date=date(2024, 3, 5)):
        order = create_order(
            dsr=self.dsr,
            route=self.route,
            order_date=order_date,
            items=[
                {
                    "product": self.product,
                    "variant": self.variant,
                    "batch": self.batch,
                    "quantity": quantity,
                    "unit": "PCS",
                    "free_quantity": free_quantity,
                    "sale_price": Decimal("10.00"),
                    "discount": Decimal("0.00"),
                }
            ],
        )
        return order, order.items.get()


class OrderSettlementTests(SettlementFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.order, self.item = self.place_order()

    def test_returns_and_adjustment_discount_reduce_net_total(self):
        order, summary = services.save_order_adjustment(
            self.order,
            item_returns=[{"item": self.item, "return_quantity": 5, "adjustment_discount": Decimal("10.00")}],
        )
        self.assertEqual(summary.order_total, Decimal("500.00"))
        self.assertEqual(summary.total_returns, Decimal("50.00"))
        self.assertEqual(summary.net_order_total, Decimal("440.00"))
        self.assertEqual(summary.net_profit, Decimal("440.00"))

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 55)
        restock = StockAdjustment.objects.get(order_id=self.order.pk)
        self.assertEqual(restock.adjustment_type, AdjustmentType.RETURN_RESTOCK)
        self.assertEqual(restock.quantity, 5)

    def test_save_records_dsr_due_and_payment_status(self):
        order, summary = services.save_order_adjustment(
            self.order,
            payments=[{"amount": Decimal("300.00")}],
            expenses=[{"amount": Decimal("20.00"), "expense_type": "transport"}],
            customer_dues=[{"customer": self.customer, "amount": Decimal("100.00")}],
            item_returns=[{"item": self.item, "return_quantity": 5, "adjustment_discount": Decimal("10.00")}],
        )
        self.assertEqual(order.status, OrderStatus.ADJUSTED)
        self.assertEqual(order.paid_amount, Decimal("300.00"))
        self.assertEqual(order.payment_status, PaymentStatus.PARTIAL)
        self.assertEqual(summary.recorded_dsr_due, Decimal("20.00"))
        self.assertFalse(summary.discrepancy)
        self.assertEqual(services.get_dsr_total_due(self.dsr), Decimal("20.00"))

    def test_save_replaces_previous_trail_and_reverses_restock(self):
        services.save_order_adjustment(
            self.order,
            payments=[{"amount": Decimal("100.00")}],
            item_returns=[{"item": self.item, "return_quantity": 5}],
        )
        order, summary = services.save_order_adjustment(self.order, payments=[{"amount": Decimal("500.00")}])

        self.assertEqual(OrderPayment.objects.filter(order=self.order).count(), 1)
        self.assertEqual(summary.total_returns, Decimal("0.00"))
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertFalse(OrderDsrDue.objects.filter(order=self.order).exists())
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 50)
        self.assertEqual(
            sorted(StockAdjustment.objects.filter(order_id=self.order.pk).values_list("quantity", flat=True)), [-5, 5]
        )

    def test_return_beyond_sold_quantity_is_rejected(self):
        with self.assertRaises(ValidationError):
            services.save_order_adjustment(self.order, item_returns=[{"item": self.item, "return_quantity": 51}])
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.remaining_quantity, 50)
        self.assertFalse(self.order.item_returns.exists())

    def test_partial_completion_appends_and_keeps_order_pending(self):
        services.complete_order_partially(
            self.order, item_returns=[{"item": self.item, "return_quantity": 20}], payments=[{"amount": Decimal("100")}]
        )
        order, summary = services.complete_order_partially(
            self.order, item_returns=[{"item": self.item, "return_quantity": 20}], payments=[{"amount": Decimal("50")}]
        )
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(summary.net_order_total, Decimal("100.00"))
        self.assertEqual(summary.total_payments, Decimal("150.00"))
        self.assertEqual(order.payment_status, PaymentStatus.PAID)

        with self.assertRaises(ValidationError):
            services.complete_order_partially(self.order, item_returns=[{"item": self.item, "return_quantity": 11}])

    def test_reconcile_flags_recorded_due_gap(self):
        services.save_order_adjustment(self.order, payments=[{"amount": Decimal("400.00")}])
        self.assertFalse(services.reconcile_order(self.order)["discrepancy"])

        OrderPayment.objects.create(order=self.order, amount=Decimal("50.00"), payment_date=date(2024, 3, 6))
        with self.assertLogs("apps.settlement.services", level="WARNING"):
            result = services.reconcile_order(self.order)
        self.assertTrue(result["discrepancy"])
        self.assertEqual(result["computed_dsr_due"], Decimal("50.00"))
        self.assertEqual(result["recorded_dsr_due"], Decimal("100.00"))

    def test_customer_due_collection_is_fifo(self):
        services.save_order_adjustment(
            self.order,
            payments=[{"amount": Decimal("400.00")}],
            customer_dues=[{"customer": self.customer, "amount": Decimal("100.00")}],
        )
        second, _ = self.place_order(quantity=10, order_date=date(2024, 3, 6))
        services.save_order_adjustment(
            second,
            payments=[{"amount": Decimal("50.00")}],
            customer_dues=[{"customer": self.customer, "amount": Decimal("50.00")}],
        )

        collections = services.collect_customer_due(self.customer, Decimal("120.00"))
        self.assertEqual([c.amount for c in collections], [Decimal("100.00"), Decimal("20.00")])
        self.assertEqual(services.customers_with_dues()[0]["outstanding"], Decimal("30.00"))

        with self.assertRaises(ValidationError):
            services.collect_customer_due(self.customer, Decimal("30.01"))

    def test_customer_due_total_is_what_remains_uncollected(self):
        services.save_order_adjustment(
            self.order,
            payments=[{"amount": Decimal("400.00")}],
            customer_dues=[{"customer": self.customer, "amount": Decimal("100.00")}],
        )
        services.collect_customer_due(self.customer, Decimal("40.00"))

        _, summary = services.get_order_adjustment(self.order)
        self.assertEqual(summary.customer_due_amount, Decimal("100.00"))
        self.assertEqual(summary.total_customer_due, Decimal("60.00"))
        self.assertEqual(summary.computed_dsr_due, Decimal("0.00"))
        self.assertFalse(summary.discrepancy)

    def test_collected_dues_lock_the_settlement(self):
        services.save_order_adjustment(self.order, payments=[{"amount": Decimal("400.00")}])
        due = OrderDsrDue.objects.get(order=self.order)
        services.collect_dsr_due(due, Decimal("40.00"))

        due.refresh_from_db()
        self.assertEqual(due.outstanding, Decimal("60.00"))
        self.assertEqual(DueCollection.objects.filter(dsr_due=due).count(), 1)
        self.assertEqual(services.get_dsr_due_summary()[0]["outstanding"], Decimal("60.00"))

        with self.assertRaises(ValidationError):
            services.collect_dsr_due(due, Decimal("60.01"))
        with self.assertRaises(InvalidStateTransition):
            services.save_order_adjustment(self.order)

    def test_dsr_ledger_rows_per_order(self):
        services.save_order_adjustment(self.order, payments=[{"amount": Decimal("450.00")}])
        self.place_order(quantity=10, order_date=date(2024, 4, 1))

        rows = services.get_dsr_ledger(self.dsr, date(2024, 3, 1), date(2024, 3, 31))
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["recorded_dsr_due"], Decimal("50.00"))

        overview = services.get_dsr_ledger_overview()
        self.assertEqual(overview[0]["orders"], 2)
        self.assertEqual(overview[0]["order_total"], Decimal("600.00"))


class SettlementApiTests(SettlementFixtureMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()
        self.order, self.item = self.place_order()
        User.objects.create_user(username="manager", password="manager123", role="MANAGER")
        User.objects.create_user(username="staff", password="staff123", role="STAFF")

    def auth(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def adjustment(self):
        return {
            "payment_date": "2024-03-06",
            "payments": [{"amount": "300.00"}],
            "customer_dues": [{"customer": self.customer.id, "amount": "100.00"}],
            "item_returns": [{"item": str(self.item.id), "return_quantity": 5, "adjustment_discount": "10.00"}],
        }

    def test_staff_cannot_settle(self):
        self.auth("staff", "staff123")
        response = self.client.post(f"/api/v1/orders/{self.order.id}/adjustment/", self.adjustment(), format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_manager_settles_and_reads_back(self):
        self.auth("manager", "manager123")
        response = self.client.post(f"/api/v1/orders/{self.order.id}/adjustment/", self.adjustment(), format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "adjusted")
        self.assertEqual(response.data["summary"]["net_order_total"], Decimal("440.00"))
        self.assertEqual(response.data["summary"]["recorded_dsr_due"], Decimal("40.00"))

        response = self.client.get(f"/api/v1/orders/{self.order.id}/adjustment/")
        self.assertEqual(len(response.data["item_returns"]), 1)
        self.assertEqual(response.data["item_returns"][0]["return_amount"], "50.00")

        response = self.client.get(f"/api/v1/orders/{self.order.id}/reconciliation/")
        self.assertFalse(response.data["discrepancy"])

    def test_customer_due_collection_endpoint(self):
        self.auth("manager", "manager123")
        self.client.post(f"/api/v1/orders/{self.order.id}/adjustment/", self.adjustment(), format="json")

        self.auth("staff", "staff123")
        response = self.client.post(
            f"/api/v1/dues/customers/{self.customer.id}/collect/", {"amount": "60.00"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get(f"/api/v1/dues/customers/{self.customer.id}/")
        self.assertEqual(response.data["dues"][0]["outstanding"], "40.00")
        self.assertEqual(len(response.data["collections"]), 1)

        response = self.client.post(
            f"/api/v1/dues/customers/{self.customer.id}/collect/", {"amount": "40.01"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_ledger_requires_reports_capability(self):
        self.auth("staff", "staff123")
        response = self.client.get(f"/api/v1/dsr-ledger/?dsr={self.dsr.id}")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.auth("manager", "manager123")
        response = self.client.get(f"/api/v1/dsr-ledger/?dsr={self.dsr.id}&date_from=2024-03-01&date_to=2024-03-31")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["orders"][0]["order_number"], self.order.order_number)
