from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.models import AuditAction
from apps.audit.services import AuditChange, record_audit
from apps.common.permissions import RolePermission
from apps.returns import services
from apps.returns.serializers import DamageReturnListSerializer, DamageReturnSerializer, DamageReturnWriteSerializer


class DamageReturnViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = DamageReturnSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["returns.view"],
        "retrieve": ["returns.view"],
        "create": ["returns.manage"],
        "destroy": ["returns.manage"],
        "approve": ["returns.approve"],
        "reject": ["returns.approve"],
    }

    def get_queryset(self):
        params = self.request.query_params
        return services.list_damage_returns(
            dsr=params.get("dsr"),
            status=params.get("status"),
            return_type=params.get("return_type"),
            date_from=params.get("date_from"),
            date_to=params.get("date_to"),
        )

    def get_serializer_class(self):
        if self.action == "list":
            return DamageReturnListSerializer
        return DamageReturnSerializer

    def get_object(self):
        return services.get_damage_return(self.kwargs["pk"])

    def _audit(self, damage_return, action_name, change):
        record_audit(
            actor=self.request.user,
            action=action_name,
            entity_type="damage_return",
            entity_id=damage_return.pk,
            entity_name=damage_return.return_number,
            change=change,
        )

    def create(self, request, *args, **kwargs):
        serializer = DamageReturnWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        damage_return = services.create_damage_return(created_by=request.user, **serializer.validated_data)
        self._audit(
            damage_return,
            AuditAction.CREATE,
            AuditChange.created({"total_amount": damage_return.total_amount, "items": len(damage_return.items.all())}),
        )
        return Response(DamageReturnSerializer(damage_return).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        damage_return = self.get_object()
        services.delete_damage_return(damage_return)
        self._audit(damage_return, AuditAction.DELETE, AuditChange.deleted({"status": damage_return.status}))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        damage_return = services.approve_damage_return(pk, approved_by=request.user)
        self._audit(
            damage_return,
            AuditAction.STATUS_CHANGE,
            AuditChange(old={"status": "pending"}, new={"status": damage_return.status}, fields=("status",)),
        )
        return Response(DamageReturnSerializer(damage_return).data)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        damage_return = services.reject_damage_return(pk, rejected_by=request.user)
        self._audit(
            damage_return,
            AuditAction.STATUS_CHANGE,
            AuditChange(old={"status": "pending"}, new={"status": damage_return.status}, fields=("status",)),
        )
        return Response(DamageReturnSerializer(damage_return).data)
