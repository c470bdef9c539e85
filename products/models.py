# products/models.py
from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


class ProductQuerySet(models.QuerySet):
    def active(self) -> "ProductQuerySet":
        return self.filter(is_active=True)

    def ids_for_skus(self, skus: Iterable[str]) -> dict[str, int]:
        """
        Map SKU -> product id. When a SKU is (wrongly) shared, the oldest product wins.
        """
        wanted = {s.strip() for s in skus if s and s.strip()}
        if not wanted:
            return {}
        result: dict[str, int] = {}
        for sku, pk in self.filter(sku__in=wanted).order_by("-pk").values_list("sku", "pk"):
            result[sku] = pk
        return result


class Product(models.Model):
    class Kind(models.TextChoices):
        SIMPLE = "SIMPLE", "Simple product"
        VARIABLE = "VARIABLE", "Variable product"
        VARIATION = "VARIATION", "Variation"

    kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.SIMPLE)

    # Variations point at their VARIABLE parent and carry their own id;
    # the cart and the quick order form always address the variation id.
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="variations",
    )

    title = models.CharField(max_length=160)
    sku = models.CharField(max_length=64, blank=True, db_index=True)

    category = models.ForeignKey(
        "catalog.Category",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="products",
    )

    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )

    # e.g. {"size": "L", "color": "Red"} on a variation
    attributes = models.JSONField(default=dict, blank=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductQuerySet.as_manager()

    class Meta:
        ordering = ["title", "pk"]

    def __str__(self) -> str:
        return self.display_name

    def clean(self):
        if self.kind == self.Kind.VARIATION:
            if self.parent is None:
                raise ValidationError({"parent": "A variation must belong to a variable product."})
            if self.parent.kind != self.Kind.VARIABLE:
                raise ValidationError({"parent": "A variation's parent must be a variable product."})
        elif self.parent_id is not None:
            raise ValidationError({"parent": "Only variations can have a parent product."})

        if not isinstance(self.attributes, dict):
            raise ValidationError({"attributes": "Attributes must be a mapping of name to value."})

    # ------------------------------------------------------------
    # Catalog contract used by the quick order reconciler
    # ------------------------------------------------------------
    def is_variant(self) -> bool:
        return self.kind == self.Kind.VARIATION

    def is_variable(self) -> bool:
        return self.kind == self.Kind.VARIABLE

    def is_purchasable(self) -> bool:
        if not self.is_active:
            return False
        if self.is_variant():
            parent = self.parent
            return bool(parent and parent.is_active)
        return True

    def display_price(self) -> Decimal:
        return Decimal(self.price or 0).quantize(Decimal("0.01"))

    def children_ids(self) -> list[int]:
        if not self.is_variable():
            return []
        return list(self.variations.order_by("pk").values_list("pk", flat=True))

    def variation_attributes(self) -> dict[str, str]:
        if not self.is_variant() or not isinstance(self.attributes, dict):
            return {}
        return {str(k): str(v) for k, v in self.attributes.items()}

    # ------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------
    @property
    def display_product(self) -> "Product":
        """The product whose name/category represent this one (the parent for variations)."""
        if self.is_variant() and self.parent is not None:
            return self.parent
        return self

    @property
    def variation_label(self) -> str:
        attrs = self.variation_attributes()
        return ", ".join(f"{k}: {v}" for k, v in sorted(attrs.items()))

    @property
    def display_name(self) -> str:
        label = self.variation_label
        if label and self.parent is not None:
            return f"{self.parent.title} ({label})"
        return self.title
