from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import generics, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.models import AuditAction
from apps.audit.services import AuditChange, record_audit
from apps.common.models import GlobalSettings
from apps.common.permissions import RolePermission
from apps.wholesale import services
from apps.wholesale.models import WholesaleOrderItem
from apps.wholesale.serializers import (
    OrderEditLockSerializer,
    OrderItemInputSerializer,
    OrderItemPatchSerializer,
    OrderStatusSerializer,
    WholesaleOrderListSerializer,
    WholesaleOrderSerializer,
    WholesaleOrderWriteSerializer,
)


def _order_snapshot(order):
    return {
        "dsr_id": order.dsr_id,
        "route_id": order.route_id,
        "order_date": order.order_date,
        "subtotal": order.subtotal,
        "discount": order.discount,
        "total": order.total,
        "status": order.status,
        "items": len(order.items.all()),
    }


class WholesaleOrderViewSet(viewsets.ModelViewSet):
    serializer_class = WholesaleOrderSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["orders.view"],
        "retrieve": ["orders.view"],
        "overdue": ["orders.view"],
        "create": ["orders.manage"],
        "update": ["orders.manage"],
        "partial_update": ["orders.manage"],
        "destroy": ["orders.manage"],
        "set_status": ["orders.manage"],
        "add_item": ["orders.manage"],
        "item_detail": ["orders.manage"],
    }

    def get_queryset(self):
        params = self.request.query_params
        return services.list_orders(
            search=params.get("search"),
            dsr=params.get("dsr"),
            route=params.get("route"),
            status=params.get("status"),
            category=params.get("category"),
            brand=params.get("brand"),
            date_from=params.get("date_from"),
            date_to=params.get("date_to"),
        )

    def get_serializer_class(self):
        if self.action in {"list", "overdue"}:
            return WholesaleOrderListSerializer
        return WholesaleOrderSerializer

    def get_object(self):
        return services.get_order(self.kwargs["pk"])

    def _edit_password(self):
        return self.request.data.get("edit_password") or self.request.headers.get("X-Order-Edit-Password")

    def create(self, request, *args, **kwargs):
        serializer = WholesaleOrderWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        data.pop("edit_password", None)
        order = services.create_order(created_by=request.user, **data)
        record_audit(
            actor=request.user,
            action=AuditAction.CREATE,
            entity_type="wholesale_order",
            entity_id=order.id,
            entity_name=order.order_number,
            change=AuditChange.created(_order_snapshot(order)),
        )
        return Response(WholesaleOrderSerializer(order).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        order = self.get_object()
        serializer = WholesaleOrderWriteSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        before = _order_snapshot(order)
        data = dict(serializer.validated_data)
        data.pop("edit_password", None)
        with transaction.atomic():
            services.ensure_order_edit_allowed(self._edit_password())
            updated = services.update_order(order, **data)
        record_audit(
            actor=request.user,
            action=AuditAction.UPDATE,
            entity_type="wholesale_order",
            entity_id=updated.id,
            entity_name=updated.order_number,
            change=AuditChange.between(before, _order_snapshot(updated)),
        )
        return Response(WholesaleOrderSerializer(updated).data)

    def destroy(self, request, *args, **kwargs):
        order = self.get_object()
        snapshot = _order_snapshot(order)
        with transaction.atomic():
            services.ensure_order_edit_allowed(self._edit_password())
            services.delete_order(order)
        record_audit(
            actor=request.user,
            action=AuditAction.DELETE,
            entity_type="wholesale_order",
            entity_id=order.id,
            entity_name=order.order_number,
            change=AuditChange.deleted(snapshot),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        order = self.get_object()
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        previous, order = services.update_order_status(order, serializer.validated_data["status"])
        record_audit(
            actor=request.user,
            action=AuditAction.STATUS_CHANGE,
            entity_type="wholesale_order",
            entity_id=order.id,
            entity_name=order.order_number,
            change=AuditChange(old={"status": previous}, new={"status": order.status}, fields=("status",)),
        )
        return Response(WholesaleOrderSerializer(order).data)

    @action(detail=True, methods=["post"], url_path="items")
    def add_item(self, request, pk=None):
        order = self.get_object()
        serializer = OrderItemInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = _order_snapshot(order)
        with transaction.atomic():
            services.ensure_order_edit_allowed(self._edit_password())
            order = services.add_order_item(order, serializer.validated_data)
        record_audit(
            actor=request.user,
            action=AuditAction.UPDATE,
            entity_type="wholesale_order",
            entity_id=order.id,
            entity_name=order.order_number,
            change=AuditChange.between(before, _order_snapshot(order)),
        )
        return Response(WholesaleOrderSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["patch", "delete"], url_path=r"items/(?P<item_id>[^/.]+)")
    def item_detail(self, request, pk=None, item_id=None):
        order = self.get_object()
        item = get_object_or_404(WholesaleOrderItem, pk=item_id, order=order)
        before = _order_snapshot(order)
        changes = None
        if request.method != "DELETE":
            serializer = OrderItemPatchSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            changes = serializer.validated_data

        with transaction.atomic():
            services.ensure_order_edit_allowed(self._edit_password())
            if changes is None:
                order = services.delete_order_item(item)
            else:
                order = services.update_order_item(item, changes)

        record_audit(
            actor=request.user,
            action=AuditAction.UPDATE,
            entity_type="wholesale_order",
            entity_id=order.id,
            entity_name=order.order_number,
            change=AuditChange.between(before, _order_snapshot(order)),
        )
        return Response(WholesaleOrderSerializer(order).data)

    @action(detail=False, methods=["get"])
    def overdue(self, request):
        queryset = services.get_overdue_pending_orders(request.query_params.get("days"))
        page = self.paginate_queryset(queryset)
        serializer = WholesaleOrderListSerializer(page if page is not None else queryset, many=True)
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)


class OrderEditLockView(generics.GenericAPIView):
    serializer_class = OrderEditLockSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "get": ["orders.view"],
        "put": ["settings.manage"],
    }

    def _payload(self, settings_row):
        return {
            "has_password": settings_row.has_order_edit_password,
            "lock_mode": settings_row.order_edit_lock_mode,
            "requires_password": settings_row.order_edit_requires_password(),
        }

    def get(self, request, *args, **kwargs):
        return Response(self._payload(GlobalSettings.load()))

    def put(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        settings_row = GlobalSettings.load()
        settings_row.set_order_edit_password(
            serializer.validated_data.get("password", ""), serializer.validated_data["lock_mode"]
        )
        record_audit(
            actor=request.user,
            action=AuditAction.UPDATE,
            entity_type="global_settings",
            entity_id=settings_row.pk,
            entity_name="order_edit_lock",
            change=AuditChange(new={"lock_mode": settings_row.order_edit_lock_mode}, fields=("lock_mode",)),
        )
        return Response(self._payload(settings_row))
