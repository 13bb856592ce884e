from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.analytics import services
from apps.settlement.services import save_order_adjustment
from apps.settlement.tests import SettlementFixtureMixin

User = get_user_model()


class PeriodKeyTests(TestCase):
    def test_week_key_counts_from_sunday_based_start_of_year(self):
        self.assertEqual(services.week_key(date(2024, 1, 1)), "2024-W01")
        self.assertEqual(services.week_key(date(2024, 1, 6)), "2024-W01")
        self.assertEqual(services.week_key(date(2024, 1, 7)), "2024-W02")
        self.assertEqual(services.week_key(date(2024, 3, 5)), "2024-W10")

    def test_monthly_and_daily_keys(self):
        self.assertEqual(services.period_key(date(2024, 3, 5), "monthly"), "2024-03")
        self.assertEqual(services.period_key(date(2024, 3, 5), "daily"), "2024-03-05")


class SalesAnalyticsTests(SettlementFixtureMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_daily_buckets_are_zero_filled(self):
        self.place_order(quantity=100)

        rows = services.sales_by_period("daily", date(2024, 3, 1), date(2024, 3, 7))

        self.assertEqual([row["period"] for row in rows], [f"2024-03-0{day}" for day in range(1, 8)])
        filled = {row["period"]: row for row in rows}
        self.assertEqual(filled["2024-03-05"]["sales"], Decimal("1000.00"))
        self.assertEqual(filled["2024-03-05"]["orders"], 1)
        for key, row in filled.items():
            if key != "2024-03-05":
                self.assertEqual((row["sales"], row["orders"]), (Decimal("0.00"), 0))

    def test_weekly_and_monthly_buckets_do_not_repeat(self):
        self.place_order(quantity=10)

        weekly = services.sales_by_period("weekly", date(2024, 3, 1), date(2024, 3, 14))
        monthly = services.sales_by_period("monthly", date(2024, 2, 20), date(2024, 3, 10))

        self.assertEqual([row["period"] for row in weekly], ["2024-W09", "2024-W10", "2024-W11"])
        self.assertEqual(weekly[1]["sales"], Decimal("100.00"))
        self.assertEqual([row["period"] for row in monthly], ["2024-02", "2024-03"])
        self.assertEqual(monthly[1]["orders"], 1)

    def test_unknown_period_is_rejected(self):
        with self.assertRaises(ValueError):
            services.sales_by_period("yearly")

    def test_settlement_returns_reduce_sales(self):
        order, item = self.place_order(quantity=50)
        save_order_adjustment(
            order,
            item_returns=[{"item": item, "return_quantity": 5, "adjustment_discount": Decimal("10.00")}],
        )

        row = services.sales_by_period("daily", date(2024, 3, 5), date(2024, 3, 5))[0]
        self.assertEqual(row["gross_sales"], Decimal("500.00"))
        self.assertEqual(row["returns"], Decimal("60.00"))
        self.assertEqual(row["sales"], Decimal("440.00"))

        top = services.top_products(date(2024, 3, 1), date(2024, 3, 31))
        self.assertEqual(top[0]["units_sold"], 45)
        self.assertEqual(top[0]["sales"], Decimal("440.00"))

    def test_overview_compares_with_previous_period(self):
        self.place_order(quantity=50)
        self.place_order(quantity=20, order_date=date(2024, 2, 25))

        overview = services.sales_overview(date(2024, 3, 1), date(2024, 3, 7))

        self.assertEqual(overview["previous_range"], {"date_from": date(2024, 2, 23), "date_to": date(2024, 2, 29)})
        self.assertEqual(overview["current"]["net_sales"], Decimal("500.00"))
        self.assertEqual(overview["previous"]["net_sales"], Decimal("200.00"))
        self.assertEqual(overview["change_pct"]["net_sales"], Decimal("150.00"))

    def test_grouping_by_dsr_route_and_status(self):
        self.place_order(quantity=10)
        self.place_order(quantity=5)

        by_dsr = services.sales_by_dsr()
        by_route = services.sales_by_route()
        distribution = services.order_status_distribution()

        self.assertEqual(by_dsr, [
            {
                "id": self.dsr.id,
                "name": "Rahim",
                "gross_sales": Decimal("150.00"),
                "returns": Decimal("0.00"),
                "orders": 2,
                "sales": Decimal("150.00"),
            }
        ])
        self.assertEqual(by_route[0]["name"], "Mirpur")
        self.assertEqual(distribution["by_status"][0]["status"], "pending")
        self.assertEqual(distribution["by_status"][0]["orders"], 2)


class AnalyticsApiTests(SettlementFixtureMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()
        self.manager = User.objects.create_user(username="manager", password="manager123", role="MANAGER")
        self.staff = User.objects.create_user(username="staff", password="staff123", role="STAFF")

    def auth(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_sales_by_period_endpoint(self):
        self.place_order(quantity=100)
        self.auth("manager", "manager123")

        response = self.client.get(
            "/api/v1/analytics/sales-by-period/",
            {"period": "daily", "date_from": "2024-03-01", "date_to": "2024-03-07"},
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["results"]), 7)
        self.assertEqual(response.data["results"][4]["sales"], Decimal("1000.00"))

    def test_inverted_range_is_rejected(self):
        self.auth("manager", "manager123")
        response = self.client.get(
            "/api/v1/analytics/overview/", {"date_from": "2024-03-07", "date_to": "2024-03-01"}
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_cannot_read_analytics(self):
        self.auth("staff", "staff123")
        response = self.client.get("/api/v1/analytics/top-products/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_is_rejected(self):
        response = self.client.get("/api/v1/analytics/status-distribution/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
