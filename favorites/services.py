# favorites/services.py
from __future__ import annotations

import logging
from typing import Iterable, List

from django.db import transaction

from products.models import Product

from .models import PriceListEntry, WishlistItem

logger = logging.getLogger(__name__)


def order_list_product_ids(user) -> List[int]:
    """
    Product ids on the shopper's order list, in display-independent order:
    wishlist items first (oldest first), then the SKUs of every active price
    list assigned to them. Duplicates and unknown SKUs are dropped.
    """
    if not getattr(user, "is_authenticated", False):
        return []

    ids: List[int] = list(
        WishlistItem.objects.filter(user=user).order_by("created_at", "pk").values_list("product_id", flat=True)
    )

    skus = list(
        PriceListEntry.objects.filter(price_list__customers=user, price_list__is_active=True)
        .order_by("price_list_id", "sort_order", "pk")
        .values_list("sku", flat=True)
    )
    if skus:
        by_sku = Product.objects.ids_for_skus(skus)
        ids.extend(by_sku[sku] for sku in skus if sku in by_sku)

    seen = set()
    result: List[int] = []
    for pid in ids:
        if pid and pid > 0 and pid not in seen:
            seen.add(pid)
            result.append(pid)
    return result


@transaction.atomic
def add_to_wishlist(user, product_ids: Iterable[int]) -> int:
    """
    Make sure every given product is on the user's wishlist. Returns how many
    were newly added.
    """
    wanted = {int(pid) for pid in product_ids if pid and int(pid) > 0}
    if not wanted or not getattr(user, "is_authenticated", False):
        return 0

    existing = set(
        WishlistItem.objects.filter(user=user, product_id__in=wanted).values_list("product_id", flat=True)
    )
    known = set(Product.objects.filter(pk__in=wanted - existing).values_list("pk", flat=True))

    WishlistItem.objects.bulk_create(
        [WishlistItem(user=user, product_id=pid) for pid in sorted(known)],
        ignore_conflicts=True,
    )
    if known:
        logger.info("wishlist: added %s product(s) for user=%s", len(known), user.pk)
    return len(known)
