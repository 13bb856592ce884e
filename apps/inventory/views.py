from django.db.models import Count, Sum
from django.db.models.functions import Coalesce
from rest_framework import generics, mixins, status, viewsets
from rest_framework.response import Response

from apps.audit.models import AuditAction
from apps.audit.services import AuditChange, record_audit
from apps.common.permissions import RolePermission
from apps.inventory import services
from apps.inventory.models import StockAdjustment, StockBatch
from apps.inventory.serializers import StockAdjustmentSerializer, StockBatchSerializer, VariantStockSerializer

BATCH_AUDIT_FIELDS = (
    "supplier_price",
    "sell_price",
    "initial_quantity",
    "remaining_quantity",
    "initial_free_qty",
    "remaining_free_qty",
)


def _batch_snapshot(batch):
    return {field: getattr(batch, field) for field in BATCH_AUDIT_FIELDS}


class StockBatchViewSet(viewsets.ModelViewSet):
    queryset = StockBatch.objects.select_related("variant__product", "supplier_purchase__supplier")
    serializer_class = StockBatchSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["stock.view"],
        "retrieve": ["stock.view"],
        "create": ["stock.manage"],
        "partial_update": ["stock.manage"],
        "update": ["stock.manage"],
        "destroy": ["stock.manage"],
    }

    def get_queryset(self):
        variant_id = self.request.query_params.get("variant")
        if variant_id:
            queryset = services.list_batches_for_variant(variant_id)
        else:
            queryset = super().get_queryset()
        product_id = self.request.query_params.get("product")
        if product_id:
            queryset = queryset.filter(variant__product_id=product_id)
        if self.request.query_params.get("in_stock") in {"1", "true"}:
            queryset = queryset.filter(remaining_quantity__gt=0)
        return queryset.order_by("-created_at")

    def perform_create(self, serializer):
        data = serializer.validated_data
        batch = services.create_stock_batch(
            variant=data["variant"],
            supplier=data.get("supplier"),
            supplier_price=data["supplier_price"],
            sell_price=data["sell_price"],
            quantity=data["initial_quantity"],
            free_quantity=data.get("initial_free_qty", 0),
            purchase_date=data.get("purchase_date"),
            note=data.get("note", ""),
        )
        serializer.instance = batch
        record_audit(
            actor=self.request.user,
            action=AuditAction.CREATE,
            entity_type="stock_batch",
            entity_id=batch.id,
            entity_name=str(batch.variant),
            change=AuditChange.created(_batch_snapshot(batch)),
        )

    def perform_update(self, serializer):
        before = _batch_snapshot(serializer.instance)
        batch = services.update_stock_batch(serializer.instance.pk, **serializer.validated_data)
        serializer.instance = batch
        record_audit(
            actor=self.request.user,
            action=AuditAction.UPDATE,
            entity_type="stock_batch",
            entity_id=batch.id,
            entity_name=str(batch.variant),
            change=AuditChange.between(before, _batch_snapshot(batch)),
        )

    def perform_destroy(self, instance):
        snapshot = _batch_snapshot(instance)
        services.delete_stock_batch(instance.pk)
        record_audit(
            actor=self.request.user,
            action=AuditAction.DELETE,
            entity_type="stock_batch",
            entity_id=instance.pk,
            entity_name=str(instance.variant),
            change=AuditChange.deleted(snapshot),
        )


class StockAdjustmentViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = StockAdjustment.objects.select_related("variant__product", "batch", "created_by")
    serializer_class = StockAdjustmentSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["stock.view"],
        "retrieve": ["stock.view"],
        "create": ["stock.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        for param, lookup in (
            ("variant", "variant_id"),
            ("batch", "batch_id"),
            ("type", "adjustment_type"),
            ("order", "order_id"),
            ("return", "return_id"),
        ):
            value = self.request.query_params.get(param)
            if value:
                queryset = queryset.filter(**{lookup: value})
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        adjustment = services.record_adjustment(
            variant=data["variant"],
            batch=data.get("batch"),
            adjustment_type=data["adjustment_type"],
            quantity=data["quantity"],
            free_quantity=data.get("free_quantity", 0),
            order_id=data.get("order_id"),
            return_id=data.get("return_id"),
            note=data.get("note", ""),
            created_by=request.user,
        )
        record_audit(
            actor=request.user,
            action=AuditAction.CREATE,
            entity_type="stock_adjustment",
            entity_id=adjustment.id,
            entity_name=str(adjustment.variant),
            change=AuditChange.created(
                {
                    "adjustment_type": adjustment.adjustment_type,
                    "batch_id": str(adjustment.batch_id) if adjustment.batch_id else None,
                    "quantity": adjustment.quantity,
                    "free_quantity": adjustment.free_quantity,
                }
            ),
        )
        return Response(self.get_serializer(adjustment).data, status=status.HTTP_201_CREATED)


class VariantStockView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["stock.view"]}

    def get(self, request, *args, **kwargs):
        queryset = StockBatch.objects.all()
        variant_id = request.query_params.get("variant")
        if variant_id:
            queryset = queryset.filter(variant_id=variant_id)
        rows = (
            queryset.values("variant_id")
            .annotate(
                batches=Count("id"),
                remaining_quantity=Coalesce(Sum("remaining_quantity"), 0),
                remaining_free_qty=Coalesce(Sum("remaining_free_qty"), 0),
            )
            .order_by("variant_id")
        )
        return Response(VariantStockSerializer(rows, many=True).data)
