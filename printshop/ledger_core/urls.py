from django.urls import path

from . import views

app_name = "ledger_core"

urlpatterns = [
    path("invoices/", views.invoice_create_view, name="invoice-create"),
    path("invoices/<int:invoice_id>/cancel/", views.invoice_cancel_view, name="invoice-cancel"),
    path("instant-invoice/", views.instant_invoice_view, name="instant-invoice"),
    path("payments/", views.payment_create_view, name="payment-create"),
    path("payments/<int:payment_id>/", views.payment_detail_view, name="payment-detail"),
    path("clients/<int:client_id>/balance/", views.client_balance_view, name="client-balance"),
    path("clients/<int:client_id>/invoices/", views.client_invoices_view, name="client-invoices"),
]
