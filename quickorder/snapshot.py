# quickorder/snapshot.py
"""
Cart snapshots and the signed token that carries one through the form.

The form is rendered with the cart contents as they were at render time. On
submit the reconciler compares that snapshot against the live cart; the HMAC
tag makes sure the snapshot it compares is the one we issued to this session.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping, Optional, Tuple

from django.conf import settings
from django.utils.crypto import constant_time_compare, salted_hmac

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_SALT = "quickorder.cart_state"


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class CartSnapshot:
    """
    Product/variant id -> quantity, sorted by id.

    Always build through from_mapping()/from_pairs(); they drop ids <= 0,
    clamp quantities to >= 0 and sum duplicate ids.
    """

    items: Tuple[Tuple[int, int], ...] = ()

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[Any, Any]]) -> "CartSnapshot":
        totals: dict[int, int] = {}
        for raw_id, raw_qty in pairs:
            product_id = _as_int(raw_id)
            if product_id is None or product_id <= 0:
                continue
            qty = _as_int(raw_qty) or 0
            totals[product_id] = totals.get(product_id, 0) + max(0, qty)
        return cls(items=tuple(sorted(totals.items())))

    @classmethod
    def from_mapping(cls, mapping: Mapping[Any, Any]) -> "CartSnapshot":
        return cls.from_pairs(mapping.items())

    def as_dict(self) -> dict[int, int]:
        return dict(self.items)

    def quantity(self, product_id: int) -> int:
        return self.as_dict().get(int(product_id), 0)

    def positive(self) -> dict[int, int]:
        return {pid: qty for pid, qty in self.items if qty > 0}

    def matches(self, other: "CartSnapshot") -> bool:
        """
        Structural equality where an id mapped to 0 equals an absent id.
        """
        return self.positive() == other.positive()

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class SnapshotToken:
    payload: str
    tag: str


class SnapshotCodec:
    """
    encode(): snapshot -> (base64 JSON payload, hex HMAC tag)
    decode(): (payload, tag) -> snapshot, or None when it cannot be trusted

    The tag is HMAC-SHA256 over "payload|session_identity" keyed with
    SECRET_KEY and the salt, so a token only verifies for the session that
    received it.
    """

    def __init__(self, *, salt: str | None = None, secret: str | None = None):
        self.salt = salt or getattr(settings, "QUICKORDER_TOKEN_SALT", "") or DEFAULT_TOKEN_SALT
        self._secret = secret

    def _tag(self, payload: str, session_identity: str) -> str:
        message = f"{payload}|{session_identity}"
        return salted_hmac(self.salt, message, secret=self._secret, algorithm="sha256").hexdigest()

    @staticmethod
    def serialize(snapshot: CartSnapshot) -> str:
        body = {str(pid): qty for pid, qty in snapshot.items}
        text = json.dumps(body, separators=(",", ":"))
        return base64.b64encode(text.encode("utf-8")).decode("ascii")

    def encode(self, snapshot: CartSnapshot, session_identity: str) -> SnapshotToken:
        normalized = CartSnapshot.from_pairs(snapshot.items)
        payload = self.serialize(normalized)
        return SnapshotToken(payload=payload, tag=self._tag(payload, str(session_identity)))

    def decode(self, payload: str | None, tag: str | None, session_identity: str) -> CartSnapshot | None:
        payload = (payload or "").strip()
        tag = (tag or "").strip()
        if not payload or not tag:
            return None

        expected = self._tag(payload, str(session_identity))
        if not constant_time_compare(expected, tag):
            logger.info("snapshot tag mismatch")
            return None

        try:
            text = base64.b64decode(payload.encode("ascii"), validate=True).decode("utf-8")
            data = json.loads(text)
        except (UnicodeError, binascii.Error, ValueError):
            logger.warning("snapshot payload with a valid tag failed to decode")
            return None

        return self._parse(data)

    @staticmethod
    def _parse(data: Any) -> CartSnapshot | None:
        if not isinstance(data, dict):
            return None

        pairs = []
        for raw_id, raw_qty in data.items():
            if not isinstance(raw_id, str) or not raw_id.isdigit():
                return None
            if isinstance(raw_qty, bool) or not isinstance(raw_qty, int):
                return None
            product_id = int(raw_id)
            if product_id <= 0 or raw_qty < 0:
                return None
            pairs.append((product_id, raw_qty))

        return CartSnapshot.from_pairs(pairs)
