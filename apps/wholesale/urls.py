from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.wholesale.views import OrderEditLockView, WholesaleOrderViewSet

router = DefaultRouter()
router.register("orders", WholesaleOrderViewSet, basename="wholesale-order")

urlpatterns = [
    path("settings/order-edit-lock/", OrderEditLockView.as_view(), name="order-edit-lock"),
]
urlpatterns += router.urls
