from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("finance/", include("finance.urls", namespace="finance")),
]
