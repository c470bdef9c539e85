# cart/cart.py
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from products.models import Product

CART_SESSION_KEY = "qo_cart_v1"


def make_line_key(product_id: int, variant_id: Optional[int] = None, attributes: Optional[dict] = None) -> str:
    """
    Stable key for a cart line. The same product/variant/attributes always map
    to the same line, so adding it twice grows one line instead of creating two.
    """
    raw = json.dumps(
        [int(product_id), int(variant_id or 0), attributes or {}],
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


@dataclass(frozen=True)
class CartLine:
    line_key: str
    product: Product  # the variation itself for variable products
    quantity: int

    @property
    def unit_price(self) -> Decimal:
        return self.product.display_price()

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price * Decimal(int(self.quantity or 0))).quantize(Decimal("0.01"))


class Cart:
    """
    Session-backed cart.

    Session format:
      {
        "<line_key>": {
            "product_id": 12,
            "variant_id": 34,          # null for simple products
            "attributes": {"size": "L"},
            "qty": 2
        }
      }

    list_lines / set_quantity / remove_line / add_line are the operations the
    quick order reconciler is allowed to use.
    """

    def __init__(self, request):
        self.request = request
        self.session = request.session
        raw = self.session.get(CART_SESSION_KEY, {})
        self.data: Dict[str, Dict[str, Any]] = raw if isinstance(raw, dict) else {}

    def _save(self) -> None:
        self.session[CART_SESSION_KEY] = self.data
        self.session.modified = True

    @staticmethod
    def _entry_ids(payload: Any) -> Tuple[int, int] | None:
        """(product_id, variant_id or 0) for a well-formed entry, else None."""
        if not isinstance(payload, dict):
            return None
        try:
            product_id = int(payload.get("product_id") or 0)
            variant_id = int(payload.get("variant_id") or 0)
        except (TypeError, ValueError):
            return None
        if product_id <= 0:
            return None
        return product_id, variant_id

    @staticmethod
    def _entry_qty(payload: Dict[str, Any]) -> int:
        try:
            return max(0, int(payload.get("qty", 0) or 0))
        except (TypeError, ValueError):
            return 0

    # ------------------------------------------------------------
    # Live cart operations
    # ------------------------------------------------------------
    def list_lines(self) -> List[Tuple[str, int, int]]:
        """(line_key, product-or-variant id, quantity) for every well-formed line."""
        result: List[Tuple[str, int, int]] = []
        for key, payload in self.data.items():
            ids = self._entry_ids(payload)
            if ids is None:
                continue
            product_id, variant_id = ids
            result.append((key, variant_id or product_id, self._entry_qty(payload)))
        return result

    def set_quantity(self, line_key: str, quantity: int) -> None:
        if line_key not in self.data:
            return
        quantity = int(quantity)
        if quantity <= 0:
            self.remove_line(line_key)
            return
        self.data[line_key]["qty"] = quantity
        self._save()

    def remove_line(self, line_key: str) -> None:
        if line_key in self.data:
            del self.data[line_key]
            self._save()

    def add_line(
        self,
        product_id: int,
        quantity: int,
        variant_id: Optional[int] = None,
        attributes: Optional[dict] = None,
    ) -> str:
        quantity = int(quantity)
        if quantity <= 0:
            raise ValueError("quantity must be positive")

        attrs = {str(k): str(v) for k, v in (attributes or {}).items()}
        key = make_line_key(product_id, variant_id, attrs)

        if key in self.data:
            payload = self.data[key]
            payload["qty"] = self._entry_qty(payload) + quantity
        else:
            self.data[key] = {
                "product_id": int(product_id),
                "variant_id": int(variant_id) if variant_id else None,
                "attributes": attrs,
                "qty": quantity,
            }

        self._save()
        return key

    def clear(self) -> None:
        self.data = {}
        self._save()

    # ------------------------------------------------------------
    # Display
    # ------------------------------------------------------------
    def lines(self) -> List[CartLine]:
        """
        Resolve lines to products. Lines whose product was deleted are dropped
        from the session; inactive products stay in the cart but are listed too
        so the shopper can see and remove them.
        """
        entries = self.list_lines()
        ids = {item_id for _, item_id, _ in entries}
        by_id = {
            p.pk: p
            for p in Product.objects.filter(pk__in=ids).select_related("parent", "category")
        }

        result: List[CartLine] = []
        dirty = False

        for key, item_id, qty in entries:
            product = by_id.get(item_id)
            if product is None:
                del self.data[key]
                dirty = True
                continue
            result.append(CartLine(line_key=key, product=product, quantity=qty))

        if dirty:
            self._save()

        return result

    def subtotal(self) -> Decimal:
        total = Decimal("0.00")
        for line in self.lines():
            total += line.line_total
        return total.quantize(Decimal("0.01"))

    def total_quantity(self) -> int:
        return sum(qty for _, _, qty in self.list_lines())

    def count_items(self) -> int:
        # count distinct lines
        return len(self.list_lines())
