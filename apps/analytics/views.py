from rest_framework import serializers
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.analytics import services
from apps.common.permissions import RolePermission


class AnalyticsQuerySerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        date_from = attrs.get("date_from")
        date_to = attrs.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({"date_from": "date_from must be before or equal to date_to."})
        return attrs


class SalesByPeriodQuerySerializer(AnalyticsQuerySerializer):
    period = serializers.ChoiceField(choices=services.PERIODS, required=False, default="daily")


class TopProductsQuerySerializer(AnalyticsQuerySerializer):
    limit = serializers.IntegerField(required=False, min_value=1, max_value=50, default=10)


class AnalyticsMixin:
    permission_classes = [RolePermission]
    capability_map = {"get": ["analytics.view"]}
    query_serializer_class = AnalyticsQuerySerializer

    def query_params(self, request):
        serializer = self.query_serializer_class(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data


class SalesOverviewView(AnalyticsMixin, APIView):
    def get(self, request):
        params = self.query_params(request)
        return Response(services.sales_overview(params.get("date_from"), params.get("date_to")))


class SalesByPeriodView(AnalyticsMixin, APIView):
    query_serializer_class = SalesByPeriodQuerySerializer

    def get(self, request):
        params = self.query_params(request)
        rows = services.sales_by_period(params["period"], params.get("date_from"), params.get("date_to"))
        return Response({"period": params["period"], "results": rows})


class SalesByDsrView(AnalyticsMixin, APIView):
    def get(self, request):
        params = self.query_params(request)
        return Response({"results": services.sales_by_dsr(params.get("date_from"), params.get("date_to"))})


class SalesByRouteView(AnalyticsMixin, APIView):
    def get(self, request):
        params = self.query_params(request)
        return Response({"results": services.sales_by_route(params.get("date_from"), params.get("date_to"))})


class TopProductsView(AnalyticsMixin, APIView):
    query_serializer_class = TopProductsQuerySerializer

    def get(self, request):
        params = self.query_params(request)
        rows = services.top_products(params.get("date_from"), params.get("date_to"), limit=params["limit"])
        return Response({"results": rows})


class OrderStatusDistributionView(AnalyticsMixin, APIView):
    def get(self, request):
        params = self.query_params(request)
        return Response(services.order_status_distribution(params.get("date_from"), params.get("date_to")))
