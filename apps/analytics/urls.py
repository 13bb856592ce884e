from django.urls import path

from apps.analytics.views import (
    OrderStatusDistributionView,
    SalesByDsrView,
    SalesByPeriodView,
    SalesByRouteView,
    SalesOverviewView,
    TopProductsView,
)

urlpatterns = [
    path("overview/", SalesOverviewView.as_view(), name="analytics-overview"),
    path("sales-by-period/", SalesByPeriodView.as_view(), name="analytics-sales-by-period"),
    path("by-dsr/", SalesByDsrView.as_view(), name="analytics-by-dsr"),
    path("by-route/", SalesByRouteView.as_view(), name="analytics-by-route"),
    path("top-products/", TopProductsView.as_view(), name="analytics-top-products"),
    path("status-distribution/", OrderStatusDistributionView.as_view(), name="analytics-status-distribution"),
]
