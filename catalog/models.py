from __future__ import annotations

from django.db import models
from django.utils.text import slugify


class Category(models.Model):
    """
    Product category. The quick order form groups rows by the category of the
    display product, so the name is what shoppers see as a section heading.
    """

    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, blank=True)

    # Root categories have parent = NULL.
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="children",
    )

    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = (("parent", "slug"),)
        ordering = ["sort_order", "name"]
        verbose_name_plural = "Categories"

    def __str__(self) -> str:
        if self.parent:
            return f"{self.parent.name} > {self.name}"
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:140]
        super().save(*args, **kwargs)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None
