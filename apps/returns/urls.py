from rest_framework.routers import DefaultRouter

from apps.returns.views import DamageReturnViewSet

router = DefaultRouter()
router.register("damage-returns", DamageReturnViewSet, basename="damage-return")

urlpatterns = router.urls
