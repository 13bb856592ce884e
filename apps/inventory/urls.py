from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.inventory.views import StockAdjustmentViewSet, StockBatchViewSet, VariantStockView

router = DefaultRouter()
router.register("batches", StockBatchViewSet, basename="stock-batch")
router.register("adjustments", StockAdjustmentViewSet, basename="stock-adjustment")

urlpatterns = [
    path("stocks/", VariantStockView.as_view(), name="inventory-stock"),
]
urlpatterns += router.urls
