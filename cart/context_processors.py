# cart/context_processors.py
from __future__ import annotations

from .cart import Cart


def cart_summary(request):
    if not hasattr(request, "session"):
        return {"cart_item_count": 0}
    return {"cart_item_count": Cart(request).total_quantity()}
