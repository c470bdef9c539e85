# quickorder/reconcile.py
"""
Compare-then-apply reconciliation of quick order submissions.

A submission carries the snapshot the form was rendered with. Quantities are
only written when that snapshot still matches the live cart; otherwise the
shopper gets the form again with the current cart. There is no lock: two
submissions that both pass the check are applied in order, last one wins.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol, Sequence, Tuple

from .quantities import StepPolicy
from .snapshot import CartSnapshot, SnapshotCodec, SnapshotToken

logger = logging.getLogger(__name__)


class CollaboratorUnavailable(RuntimeError):
    """The cart or catalog cannot be reached; nothing was compared or written."""

    def __init__(self, collaborator: str, message: str = ""):
        self.collaborator = collaborator
        super().__init__(message or f"{collaborator} unavailable")


class CatalogProduct(Protocol):
    pk: Any
    parent_id: Optional[int]

    def is_purchasable(self) -> bool: ...

    def display_price(self): ...

    def is_variant(self) -> bool: ...

    def is_variable(self) -> bool: ...
    def children_ids(self) -> List[int]: ...

    def variation_attributes(self) -> dict: ...


class Catalog(Protocol):
    def get_product(self, product_id: int) -> Optional[CatalogProduct]: ...


class LiveCart(Protocol):
    def list_lines(self) -> Sequence[Tuple[str, int, int]]: ...

    def set_quantity(self, line_key: str, quantity: int) -> None: ...

    def remove_line(self, line_key: str) -> None: ...

    def add_line(self, product_id: int, quantity: int, variant_id: Optional[int] = None, attributes: Optional[dict] = None): ...


class ReconcileStatus(Enum):
    APPLIED = "applied"
    REJECTED = "rejected"


class RejectReason(Enum):
    UNTRUSTED_SNAPSHOT = "untrusted or missing snapshot"
    CART_CHANGED = "cart changed concurrently"


@dataclass(frozen=True)
class ReconcileResult:
    status: ReconcileStatus
    reason: Optional[RejectReason] = None
    updated_ids: Tuple[int, ...] = ()
    skipped_ids: Tuple[int, ...] = ()
    ordered_ids: Tuple[int, ...] = ()

    @property
    def applied(self) -> bool:
        return self.status is ReconcileStatus.APPLIED

    @classmethod
    def rejected(cls, reason: RejectReason) -> "ReconcileResult":
        return cls(status=ReconcileStatus.REJECTED, reason=reason)


class Reconciler:
    """
    Built once per process with its collaborators; the live cart is handed in
    per call and never kept.
    """

    def __init__(self, *, codec: SnapshotCodec, catalog: Catalog, step_policy: StepPolicy):
        self.codec = codec
        self.catalog = catalog
        self.step_policy = step_policy

    @staticmethod
    def _require(cart: Optional[LiveCart]) -> LiveCart:
        if cart is None:
            raise CollaboratorUnavailable("cart")
        return cart

    def live_snapshot(self, cart: Optional[LiveCart]) -> CartSnapshot:
        cart = self._require(cart)
        return CartSnapshot.from_pairs((item_id, qty) for _, item_id, qty in cart.list_lines())

    def issue_token(self, cart: Optional[LiveCart], session_identity: str) -> SnapshotToken:
        return self.codec.encode(self.live_snapshot(cart), session_identity)

    def reconcile(
        self,
        cart: Optional[LiveCart],
        *,
        payload: str | None,
        tag: str | None,
        session_identity: str,
        quantities: Mapping[int, Any],
    ) -> ReconcileResult:
        cart = self._require(cart)

        submitted = self.codec.decode(payload, tag, session_identity)
        if submitted is None:
            logger.info("quick order rejected: %s", RejectReason.UNTRUSTED_SNAPSHOT.value)
            return ReconcileResult.rejected(RejectReason.UNTRUSTED_SNAPSHOT)

        live = self.live_snapshot(cart)
        if not submitted.matches(live):
            logger.info(
                "quick order rejected: %s (rendered=%s live=%s)",
                RejectReason.CART_CHANGED.value,
                submitted.positive(),
                live.positive(),
            )
            return ReconcileResult.rejected(RejectReason.CART_CHANGED)

        return self._apply(cart, quantities)

    def _apply(self, cart: LiveCart, quantities: Mapping[int, Any]) -> ReconcileResult:
        updated: List[int] = []
        skipped: List[int] = []
        ordered: List[int] = []

        for raw_id, raw_qty in quantities.items():
            try:
                product_id = int(raw_id)
            except (TypeError, ValueError):
                continue
            if product_id <= 0:
                continue

            product = self.catalog.get_product(product_id)
            if product is None:
                logger.warning("quick order: unknown product id=%s skipped", product_id)
                skipped.append(product_id)
                continue
            if product.is_variable():
                # only its variations can be bought
                logger.warning("quick order: variable product id=%s skipped", product_id)
                skipped.append(product_id)
                continue
            if product.is_variant() and not product.parent_id:
                logger.warning("quick order: variation id=%s has no parent, skipped", product_id)
                skipped.append(product_id)
                continue

            quantity = self.step_policy.normalize(product, raw_qty)
            if quantity > 0 and not product.is_purchasable():
                # a quantity of 0 still removes its line
                logger.warning("quick order: product id=%s is not purchasable, skipped", product_id)
                skipped.append(product_id)
                continue
            if self._upsert(cart, product, quantity):
                updated.append(product_id)
            if quantity > 0:
                ordered.append(product_id)

        logger.info(
            "quick order applied: updated=%s skipped=%s",
            updated,
            skipped,
        )
        return ReconcileResult(
            status=ReconcileStatus.APPLIED,
            updated_ids=tuple(updated),
            skipped_ids=tuple(skipped),
            ordered_ids=tuple(ordered),
        )

    @staticmethod
    def _find_line(cart: LiveCart, item_id: int) -> Optional[Tuple[str, int]]:
        for line_key, line_item_id, qty in cart.list_lines():
            if line_item_id == item_id:
                return line_key, qty
        return None

    def _upsert(self, cart: LiveCart, product: CatalogProduct, quantity: int) -> bool:
        """
        Absolute set: insert, overwrite or remove the product's line.
        Returns True when the cart was written.
        """
        item_id = int(product.pk)
        existing = self._find_line(cart, item_id)

        if existing is not None:
            line_key, current = existing
            if quantity > 0:
                if quantity == current:
                    return False
                cart.set_quantity(line_key, quantity)
            else:
                cart.remove_line(line_key)
            return True

        if quantity <= 0:
            return False

        if product.is_variant():
            cart.add_line(
                product.parent_id,
                quantity,
                variant_id=item_id,
                attributes=product.variation_attributes(),
            )
        else:
            cart.add_line(item_id, quantity)
        return True
