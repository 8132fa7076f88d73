from django.urls import path

from . import api, views

app_name = "finance"

urlpatterns = [
    path("invoice-settings/", api.invoice_settings_api, name="invoice_settings"),
    path("invoice-settings/generate/", api.invoice_number_api, name="invoice_number"),
    path("invoice-settings/sequences/", api.invoice_sequence_list_api, name="invoice_sequence_list"),
    path(
        "invoice-settings/sequences/export/",
        views.invoice_sequence_export_view,
        name="invoice_sequence_export",
    ),
]
