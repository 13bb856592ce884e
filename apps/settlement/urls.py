from django.urls import path

from apps.settlement.views import (
    CustomerDueCollectView,
    CustomerDueDetailView,
    CustomerDueListView,
    DsrDueCollectView,
    DsrDueDetailView,
    DsrDueSummaryView,
    DsrLedgerOverviewView,
    DsrLedgerView,
    OrderAdjustmentView,
    OrderPartialCompletionView,
    OrderReconciliationView,
)

urlpatterns = [
    path("orders/<uuid:pk>/adjustment/", OrderAdjustmentView.as_view(), name="order-adjustment"),
    path("orders/<uuid:pk>/partial-completion/", OrderPartialCompletionView.as_view(), name="order-partial-completion"),
    path("orders/<uuid:pk>/reconciliation/", OrderReconciliationView.as_view(), name="order-reconciliation"),
    path("dues/customers/", CustomerDueListView.as_view(), name="customer-due-list"),
    path("dues/customers/<int:customer_id>/", CustomerDueDetailView.as_view(), name="customer-due-detail"),
    path("dues/customers/<int:customer_id>/collect/", CustomerDueCollectView.as_view(), name="customer-due-collect"),
    path("dues/dsr/", DsrDueSummaryView.as_view(), name="dsr-due-summary"),
    path("dues/dsr/collect/", DsrDueCollectView.as_view(), name="dsr-due-collect"),
    path("dues/dsr/<int:dsr_id>/", DsrDueDetailView.as_view(), name="dsr-due-detail"),
    path("dsr-ledger/", DsrLedgerView.as_view(), name="dsr-ledger"),
    path("dsr-ledger/overview/", DsrLedgerOverviewView.as_view(), name="dsr-ledger-overview"),
]
