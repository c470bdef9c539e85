from __future__ import annotations

import logging

from django.contrib import messages
from django.shortcuts import get_object_or_404, redirect, render
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_POST

from core.throttle import ThrottleRule, throttle
from products.models import Product

from .cart import Cart

logger = logging.getLogger(__name__)


CART_ADD_RULE = ThrottleRule(key_prefix="cart_add", limit=30, window_seconds=60)

MAX_ADD_QUANTITY = 999


def _parse_add_quantity(raw: str) -> int:
    try:
        quantity = int((raw or "1").strip())
    except ValueError:
        quantity = 1
    return min(max(quantity, 1), MAX_ADD_QUANTITY)


def cart_detail(request):
    cart = Cart(request)
    cart_lines = cart.lines()

    return render(
        request,
        "cart/cart_detail.html",
        {
            "cart": cart,
            "cart_lines": cart_lines,
            "subtotal": cart.subtotal(),
        },
    )


@require_POST
@throttle(CART_ADD_RULE)
def cart_add(request):
    """
    Add a product from anywhere in the store. Variations are stored under
    their parent with the variation id and attributes, like the store cart does.
    """
    cart = Cart(request)

    product_id = (request.POST.get("product_id") or "").strip()
    if not product_id.isdigit():
        messages.error(request, "Unknown product.")
        return redirect("cart:detail")

    product = get_object_or_404(Product.objects.select_related("parent"), pk=int(product_id))
    if not product.is_purchasable() or product.is_variable():
        messages.error(request, "This item is not available right now.")
        return redirect("cart:detail")

    quantity = _parse_add_quantity(request.POST.get("quantity", "1"))

    if product.is_variant():
        cart.add_line(product.parent_id, quantity, variant_id=product.pk, attributes=product.variation_attributes())
    else:
        cart.add_line(product.pk, quantity)

    logger.info("cart add product=%s qty=%s", product.pk, quantity)
    messages.success(request, "Added to cart.")

    next_url = (request.POST.get("next") or "").strip()
    if next_url and url_has_allowed_host_and_scheme(next_url, allowed_hosts={request.get_host()}):
        return redirect(next_url)

    return redirect("cart:detail")
