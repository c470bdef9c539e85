# products/admin.py
from __future__ import annotations

from django.contrib import admin

from .models import Product


class VariationInline(admin.TabularInline):
    model = Product
    fk_name = "parent"
    extra = 0
    fields = ("title", "sku", "price", "attributes", "is_active")
    verbose_name = "Variation"
    verbose_name_plural = "Variations"


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "sku", "kind", "parent", "category", "price", "is_active", "created_at")
    list_filter = ("kind", "is_active", "category")
    search_fields = ("title", "sku")
    raw_id_fields = ("parent", "category")

    def get_inlines(self, request, obj):
        if obj is not None and obj.is_variable():
            return [VariationInline]
        return []

    def save_formset(self, request, form, formset, change):
        # Inline rows are always variations of the edited product.
        instances = formset.save(commit=False)
        for obj in instances:
            obj.kind = Product.Kind.VARIATION
            obj.category = None
            obj.save()
        for obj in formset.deleted_objects:
            obj.delete()
        formset.save_m2m()
