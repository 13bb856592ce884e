from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.response import Response

from apps.audit.models import AuditAction
from apps.audit.services import AuditChange, record_audit
from apps.common.permissions import RolePermission
from apps.distribution.models import Customer, Dsr
from apps.settlement import services
from apps.settlement.models import OrderDsrDue
from apps.settlement.serializers import (
    CollectCustomerDueSerializer,
    CollectDsrDueSerializer,
    DueCollectionSerializer,
    LedgerQuerySerializer,
    OrderAdjustmentInputSerializer,
    OrderCustomerDueSerializer,
    OrderDsrDueSerializer,
    OrderExpenseSerializer,
    OrderItemReturnSerializer,
    OrderPaymentSerializer,
)


def adjustment_payload(order, summary):
    return {
        "order_id": order.pk,
        "order_number": order.order_number,
        "status": order.status,
        "paid_amount": order.paid_amount,
        "payment_status": order.payment_status,
        "summary": summary.as_dict(),
        "item_profits": services.item_profits(order),
        "item_returns": OrderItemReturnSerializer(order.item_returns.all(), many=True).data,
        "payments": OrderPaymentSerializer(order.payments.all(), many=True).data,
        "expenses": OrderExpenseSerializer(order.expenses.all(), many=True).data,
        "customer_dues": OrderCustomerDueSerializer(order.customer_dues.all(), many=True).data,
        "dsr_dues": OrderDsrDueSerializer(order.dsr_dues.all(), many=True).data,
    }


class OrderAdjustmentView(generics.GenericAPIView):
    serializer_class = OrderAdjustmentInputSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "get": ["orders.view"],
        "post": ["orders.settle"],
    }

    def get(self, request, pk):
        order, summary = services.get_order_adjustment(pk)
        return Response(adjustment_payload(order, summary))

    def post(self, request, pk):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order, summary = services.save_order_adjustment(pk, created_by=request.user, **serializer.validated_data)
        record_audit(
            actor=request.user,
            action=AuditAction.UPDATE,
            entity_type="order_settlement",
            entity_id=order.pk,
            entity_name=order.order_number,
            change=AuditChange.created(
                {
                    "net_order_total": summary.net_order_total,
                    "total_payments": summary.total_payments,
                    "total_expenses": summary.total_expenses,
                    "recorded_dsr_due": summary.recorded_dsr_due,
                }
            ),
        )
        return Response(adjustment_payload(order, summary))


class OrderPartialCompletionView(generics.GenericAPIView):
    serializer_class = OrderAdjustmentInputSerializer
    permission_classes = [RolePermission]
    capability_map = {"post": ["orders.settle"]}

    def post(self, request, pk):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order, summary = services.complete_order_partially(pk, created_by=request.user, **serializer.validated_data)
        order, summary = services.get_order_adjustment(order)
        record_audit(
            actor=request.user,
            action=AuditAction.UPDATE,
            entity_type="order_settlement",
            entity_id=order.pk,
            entity_name=order.order_number,
            change=AuditChange.created({"net_order_total": summary.net_order_total, "partial": True}),
        )
        return Response(adjustment_payload(order, summary))


class OrderReconciliationView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["orders.view"]}

    def get(self, request, pk):
        return Response(services.reconcile_order(pk))


class CustomerDueListView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["dues.view"]}

    def get(self, request):
        return Response(services.customers_with_dues())


class CustomerDueDetailView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["dues.view"]}

    def get(self, request, customer_id):
        customer = get_object_or_404(Customer, pk=customer_id)
        dues = services.customer_due_details(customer)
        return Response(
            {
                "customer_id": customer.pk,
                "name": customer.name,
                "shop_name": customer.shop_name,
                "dues": OrderCustomerDueSerializer(dues, many=True).data,
                "collections": DueCollectionSerializer(services.collection_history(customer=customer), many=True).data,
            }
        )


class CustomerDueCollectView(generics.GenericAPIView):
    serializer_class = CollectCustomerDueSerializer
    permission_classes = [RolePermission]
    capability_map = {"post": ["dues.collect"]}

    def post(self, request, customer_id):
        customer = get_object_or_404(Customer, pk=customer_id)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if data.get("due") is not None and data["due"].customer_id != customer.pk:
            return Response(
                {"success": False, "code": "invalid", "detail": "Due belongs to another customer.", "fields": {}},
                status=status.HTTP_400_BAD_REQUEST,
            )
        collections = services.collect_customer_due(
            customer,
            data["amount"],
            due=data.get("due"),
            collection_date=data.get("collection_date"),
            note=data.get("note", ""),
            collected_by=request.user,
        )
        record_audit(
            actor=request.user,
            action=AuditAction.CREATE,
            entity_type="customer_due_collection",
            entity_id=customer.pk,
            entity_name=customer.name,
            change=AuditChange.created({"amount": data["amount"], "collections": len(collections)}),
        )
        return Response(DueCollectionSerializer(collections, many=True).data, status=status.HTTP_201_CREATED)


class DsrDueSummaryView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["dues.view"]}

    def get(self, request):
        return Response(services.get_dsr_due_summary())


class DsrDueDetailView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["dues.view"]}

    def get(self, request, dsr_id):
        dsr = get_object_or_404(Dsr, pk=dsr_id)
        dues = OrderDsrDue.objects.filter(dsr=dsr).select_related("order", "dsr").order_by("order__order_date")
        return Response(
            {
                "dsr_id": dsr.pk,
                "dsr_name": dsr.name,
                "total_due": services.get_dsr_total_due(dsr),
                "dues": OrderDsrDueSerializer(dues, many=True).data,
                "collections": DueCollectionSerializer(services.collection_history(dsr=dsr), many=True).data,
            }
        )


class DsrDueCollectView(generics.GenericAPIView):
    serializer_class = CollectDsrDueSerializer
    permission_classes = [RolePermission]
    capability_map = {"post": ["dues.collect"]}

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        collection = services.collect_dsr_due(
            data["due"],
            data["amount"],
            collection_date=data.get("collection_date"),
            note=data.get("note", ""),
            collected_by=request.user,
        )
        record_audit(
            actor=request.user,
            action=AuditAction.CREATE,
            entity_type="dsr_due_collection",
            entity_id=collection.pk,
            entity_name=data["due"].dsr.name,
            change=AuditChange.created({"amount": collection.amount, "due_id": str(data["due"].pk)}),
        )
        return Response(DueCollectionSerializer(collection).data, status=status.HTTP_201_CREATED)


class DsrLedgerView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["reports.view"]}

    def get(self, request):
        query = LedgerQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        if "dsr" not in params:
            return Response(
                {"success": False, "code": "invalid", "detail": "dsr is required.", "fields": {}},
                status=status.HTTP_400_BAD_REQUEST,
            )
        dsr = get_object_or_404(Dsr, pk=params["dsr"])
        rows = services.get_dsr_ledger(dsr, params.get("date_from"), params.get("date_to"))
        return Response({"dsr_id": dsr.pk, "dsr_name": dsr.name, "orders": rows})


class DsrLedgerOverviewView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["reports.view"]}

    def get(self, request):
        query = LedgerQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        return Response(services.get_dsr_ledger_overview(params.get("date_from"), params.get("date_to")))
