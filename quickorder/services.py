# quickorder/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from typing import Dict, Iterable, List

from favorites.services import order_list_product_ids
from products.models import Product

from .adapters import ProductCatalog
from .quantities import StepPolicy
from .reconcile import LiveCart, Reconciler
from .snapshot import SnapshotCodec, SnapshotToken

logger = logging.getLogger(__name__)

OTHER_PRODUCTS_LABEL = "Other products"
CART_GROUP_LABEL = "Products already in your cart"
CART_GROUP_NOTE = (
    "These products are already in your cart (even if they are not on your order list) "
    "and are shown first."
)


@lru_cache(maxsize=None)
def get_reconciler() -> Reconciler:
    """Process-wide reconciler wired to the Django collaborators."""
    return Reconciler(
        codec=SnapshotCodec(),
        catalog=ProductCatalog(),
        step_policy=StepPolicy.from_settings(),
    )


@dataclass(frozen=True)
class OrderRow:
    product: Product
    display: Product
    price: Decimal
    step: int
    in_cart: bool
    cart_quantity: int

    @property
    def sort_name(self) -> str:
        return (self.display.title or "").casefold()

    @property
    def editable(self) -> bool:
        """Variable products are ordered through their variations, so their row only shows the cart total."""
        return not self.product.is_variable()


@dataclass
class OrderGroup:
    label: str
    rows: List[OrderRow] = field(default_factory=list)
    note: str = ""
    is_cart: bool = False


@dataclass(frozen=True)
class QuickOrderPage:
    groups: List[OrderGroup]
    token: SnapshotToken

    @property
    def is_empty(self) -> bool:
        return not any(group.rows for group in self.groups)


def _load_products(ids: Iterable[int]) -> Dict[int, Product]:
    ids = list(ids)
    if not ids:
        return {}
    qs = Product.objects.filter(pk__in=ids).select_related("parent", "parent__category", "category")
    return {p.pk: p for p in qs}


def _cart_quantity(product: Product, cart_quantities: Dict[int, int]) -> int:
    """
    Quantity of this product in the cart. A variable product that is not in
    the cart itself counts the quantities of its variations.
    """
    if product.pk in cart_quantities:
        return int(cart_quantities[product.pk])
    if product.is_variable():
        return sum(int(cart_quantities.get(child_id, 0)) for child_id in product.children_ids())
    return 0


def _is_in_cart(product: Product, cart_quantities: Dict[int, int]) -> bool:
    if cart_quantities.get(product.pk, 0) > 0:
        return True
    if product.is_variable():
        return any(cart_quantities.get(child_id, 0) > 0 for child_id in product.children_ids())
    return False


def list_products_for_user(user) -> Dict[int, Product]:
    """Purchasable products on the user's order list, keyed by id, list order kept."""
    ids = order_list_product_ids(user)
    loaded = _load_products(ids)
    result: Dict[int, Product] = {}
    for pid in ids:
        product = loaded.get(pid)
        if product is None or not product.is_purchasable():
            continue
        result[pid] = product
    return result


def cart_products_not_in_list(existing_ids: Iterable[int], cart_quantities: Dict[int, int]) -> Dict[int, Product]:
    existing = set(existing_ids)
    wanted = [pid for pid, qty in cart_quantities.items() if qty > 0 and pid not in existing]
    loaded = _load_products(wanted)
    return {pid: loaded[pid] for pid in wanted if pid in loaded}


def group_products_by_category(
    products: Iterable[Product],
    cart_quantities: Dict[int, int],
    step_policy: StepPolicy,
) -> List[OrderGroup]:
    groups: Dict[int, OrderGroup] = {}

    for product in products:
        display = product.display_product
        category = display.category
        key = category.pk if category is not None else 0
        label = category.name if category is not None else OTHER_PRODUCTS_LABEL

        group = groups.setdefault(key, OrderGroup(label=label))
        group.rows.append(
            OrderRow(
                product=product,
                display=display,
                price=product.display_price(),
                step=step_policy.step_for(product),
                in_cart=_is_in_cart(product, cart_quantities),
                cart_quantity=_cart_quantity(product, cart_quantities),
            )
        )

    for group in groups.values():
        group.rows.sort(key=lambda row: row.sort_name)

    return sorted(groups.values(), key=lambda g: g.label.casefold())


def elevate_cart_group(groups: List[OrderGroup]) -> List[OrderGroup]:
    """Move rows already in the cart into a leading group of their own."""
    cart_rows: List[OrderRow] = []
    remaining_groups: List[OrderGroup] = []

    for group in groups:
        keep = [row for row in group.rows if not row.in_cart]
        cart_rows.extend(row for row in group.rows if row.in_cart)
        if keep:
            remaining_groups.append(OrderGroup(label=group.label, rows=keep, note=group.note))

    if not cart_rows:
        return remaining_groups

    cart_rows.sort(key=lambda row: row.sort_name)
    cart_group = OrderGroup(label=CART_GROUP_LABEL, rows=cart_rows, note=CART_GROUP_NOTE, is_cart=True)
    return [cart_group] + remaining_groups


def build_quick_order_page(
    *,
    user,
    cart: LiveCart,
    session_identity: str,
    reconciler: Reconciler | None = None,
) -> QuickOrderPage:
    """
    Rows and token come from the same live snapshot, so what the shopper sees
    is exactly what the token vouches for.
    """
    reconciler = reconciler or get_reconciler()

    snapshot = reconciler.live_snapshot(cart)
    token = reconciler.codec.encode(snapshot, session_identity)
    cart_quantities = snapshot.as_dict()

    products = list_products_for_user(user)
    products.update(cart_products_not_in_list(products.keys(), cart_quantities))

    groups = group_products_by_category(products.values(), cart_quantities, reconciler.step_policy)
    return QuickOrderPage(groups=elevate_cart_group(groups), token=token)
