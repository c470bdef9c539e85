from __future__ import annotations

from django.contrib import admin

from .models import PriceList, PriceListEntry, WishlistItem


@admin.register(WishlistItem)
class WishlistItemAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "product", "created_at")
    list_filter = ("created_at",)
    search_fields = ("user__username", "user__email", "product__title", "product__sku")
    raw_id_fields = ("user", "product")
    ordering = ("-created_at",)


class PriceListEntryInline(admin.TabularInline):
    model = PriceListEntry
    extra = 0


@admin.register(PriceList)
class PriceListAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "entries__sku", "customers__username")
    filter_horizontal = ("customers",)
    inlines = [PriceListEntryInline]
