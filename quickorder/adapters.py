# quickorder/adapters.py
"""
Django-side implementations of the reconciler's collaborators.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.db import DatabaseError

from cart.cart import Cart
from products.models import Product

from .reconcile import CollaboratorUnavailable

logger = logging.getLogger(__name__)


class ProductCatalog:
    """Catalog lookup backed by the products table."""

    def get_product(self, product_id: int) -> Optional[Product]:
        try:
            return Product.objects.select_related("parent").filter(pk=int(product_id)).first()
        except DatabaseError as exc:
            raise CollaboratorUnavailable("catalog", str(exc)) from exc


def get_live_cart(request) -> Optional[Cart]:
    """The shopper's session cart, or None when the request carries no session."""
    if getattr(request, "session", None) is None:
        logger.error("live cart requested without a session")
        return None
    return Cart(request)


def session_identity(request) -> str:
    """
    Keying input for the snapshot tag: the user plus their current session.
    A token issued in one login session does not verify in another.
    """
    user = getattr(request, "user", None)
    user_part = str(user.pk) if user is not None and user.is_authenticated else "anon"
    session = getattr(request, "session", None)
    session_part = (session.session_key if session is not None else None) or ""
    return f"{user_part}:{session_part}"
