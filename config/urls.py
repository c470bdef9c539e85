# config/urls.py

from __future__ import annotations

from django.contrib import admin
from django.urls import include, path
from django.views.generic import RedirectView

urlpatterns = [
    path("", RedirectView.as_view(pattern_name="quickorder:form", permanent=False)),
    path("admin/", admin.site.urls),
    path("cart/", include("cart.urls")),
    path("quick-order/", include("quickorder.urls")),
]
