from __future__ import annotations

from django.apps import AppConfig


class QuickOrderConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "quickorder"
    verbose_name = "Quick order"
