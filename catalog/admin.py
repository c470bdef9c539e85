from __future__ import annotations

from django.contrib import admin

from .models import Category


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "parent", "is_active", "sort_order")
    list_filter = ("is_active",)
    search_fields = ("name", "slug")
    list_editable = ("is_active", "sort_order")
    raw_id_fields = ("parent",)
    ordering = ("sort_order", "name")

    def get_prepopulated_fields(self, request, obj=None):
        return {"slug": ("name",)}
