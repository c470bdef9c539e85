# quickorder/views.py
from __future__ import annotations

import logging
import re
from typing import Dict

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.http import HttpRequest, HttpResponse
from django.shortcuts import redirect, render
from django.urls import reverse
from django.utils.http import url_has_allowed_host_and_scheme

from core.throttle import ThrottleRule, throttle
from favorites.services import add_to_wishlist

from .adapters import get_live_cart, session_identity
from .quantities import MAX_QUANTITY
from .reconcile import CollaboratorUnavailable
from .services import build_quick_order_page, get_reconciler

logger = logging.getLogger(__name__)

QUICK_ORDER_SUBMIT_RULE = ThrottleRule(key_prefix="quick_order_submit", limit=20, window_seconds=60)

UPDATE_CART_ACTION = "update_cart"

_QUANTITY_FIELD = re.compile(r"^quantities\[(\d+)\]$")

CART_CHANGED_NOTICE = (
    "Your cart changed since you opened the order list. "
    "We have refreshed the list so you can review all products again."
)
UPDATED_NOTICE = "Your order list has been updated. Review your order and complete checkout."
UNAVAILABLE_NOTICE = "We could not update your cart right now. Please try again in a moment."


def parse_quantity_fields(data) -> Dict[int, str]:
    """
    quantities[<product_id>] form fields -> {product_id: raw value}.
    Keys that are not positive integers are ignored.
    """
    result: Dict[int, str] = {}
    for key in data.keys():
        match = _QUANTITY_FIELD.match(key)
        if not match:
            continue
        product_id = int(match.group(1))
        if product_id <= 0:
            continue
        result[product_id] = data.get(key, "")
    return result


def _form_url(request: HttpRequest) -> str:
    next_url = (request.POST.get("next") or "").strip()
    if next_url and url_has_allowed_host_and_scheme(
        next_url,
        allowed_hosts={request.get_host()},
        require_https=request.is_secure(),
    ):
        return next_url
    return reverse("quickorder:form")


def _checkout_url() -> str:
    return getattr(settings, "QUICKORDER_CHECKOUT_URL", "") or reverse("cart:detail")


def _unavailable(request: HttpRequest, exc: CollaboratorUnavailable) -> HttpResponse:
    logger.exception("quick order: %s unavailable", exc.collaborator)
    return render(
        request,
        "quickorder/unavailable.html",
        {"message": UNAVAILABLE_NOTICE},
        status=503,
    )


@login_required
@throttle(QUICK_ORDER_SUBMIT_RULE)
def quick_order(request: HttpRequest) -> HttpResponse:
    """
    GET renders the order list form; POST with action=update_cart submits it.
    CSRF protection comes from CsrfViewMiddleware.
    """
    if request.method == "POST" and request.POST.get("action") == UPDATE_CART_ACTION:
        return _submit(request)
    return _render_form(request)


def _render_form(request: HttpRequest) -> HttpResponse:
    cart = get_live_cart(request)
    try:
        page = build_quick_order_page(
            user=request.user,
            cart=cart,
            session_identity=session_identity(request),
        )
    except CollaboratorUnavailable as exc:
        return _unavailable(request, exc)

    if page.is_empty:
        return render(
            request,
            "quickorder/empty.html",
            {"contact_email": getattr(settings, "QUICKORDER_CONTACT_EMAIL", "")},
        )

    return render(
        request,
        "quickorder/quick_order.html",
        {
            "groups": page.groups,
            "cart_state": page.token.payload,
            "cart_state_hash": page.token.tag,
            "action": UPDATE_CART_ACTION,
            "max_quantity": MAX_QUANTITY,
        },
    )


def _submit(request: HttpRequest) -> HttpResponse:
    reconciler = get_reconciler()
    try:
        result = reconciler.reconcile(
            get_live_cart(request),
            payload=request.POST.get("cart_state"),
            tag=request.POST.get("cart_state_hash"),
            session_identity=session_identity(request),
            quantities=parse_quantity_fields(request.POST),
        )
    except CollaboratorUnavailable as exc:
        return _unavailable(request, exc)

    if not result.applied:
        logger.info("quick order submission rejected for user=%s: %s", request.user.pk, result.reason.value)
        messages.warning(request, CART_CHANGED_NOTICE)
        return redirect(_form_url(request))

    if result.skipped_ids:
        logger.warning("quick order: skipped unknown products %s for user=%s", list(result.skipped_ids), request.user.pk)

    add_to_wishlist(request.user, result.ordered_ids)

    messages.success(request, UPDATED_NOTICE)
    return redirect(_checkout_url())
