from __future__ import annotations

from django.conf import settings
from django.db import models


class WishlistItem(models.Model):
    """A product the shopper keeps on their order list."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="wishlist_items",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="wishlisted_by",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("user", "product")
        ordering = ["created_at", "pk"]
        verbose_name = "Wishlist Item"
        verbose_name_plural = "Wishlist Items"

    def __str__(self) -> str:
        return f"WishlistItem(user={self.user_id}, product={self.product_id})"


class PriceList(models.Model):
    """
    A negotiated price list assigned to one or more customers. Every SKU on it
    shows up on those customers' order lists.
    """

    name = models.CharField(max_length=160)
    customers = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="price_lists",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name", "pk"]

    def __str__(self) -> str:
        return self.name


class PriceListEntry(models.Model):
    price_list = models.ForeignKey(PriceList, on_delete=models.CASCADE, related_name="entries")
    sku = models.CharField(max_length=64)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        unique_together = ("price_list", "sku")
        ordering = ["sort_order", "pk"]
        verbose_name = "Price List Entry"
        verbose_name_plural = "Price List Entries"

    def __str__(self) -> str:
        return f"{self.price_list.name}: {self.sku}"
