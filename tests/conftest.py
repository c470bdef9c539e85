from __future__ import annotations

from decimal import Decimal

import pytest
from django.core.cache import cache

from catalog.models import Category
from products.models import Product
from quickorder.services import get_reconciler


@pytest.fixture(autouse=True)
def _fresh_process_state():
    # throttle counters live in the cache; the reconciler reads settings once
    cache.clear()
    get_reconciler.cache_clear()
    yield
    get_reconciler.cache_clear()


class FakeProduct:
    """Stand-in for a catalog product with just what the reconciler reads."""

    def __init__(
        self, pk, price="25.00", *, parent_id=None, variant=False, variable=False, attributes=None, active=True
    ):
        self.pk = pk
        self.parent_id = parent_id
        self.price = Decimal(price)
        self.variant = variant
        self.variable = variable
        self.attributes = attributes or {}
        self.active = active

    def is_purchasable(self):
        return self.active

    def display_price(self):
        return self.price

    def is_variant(self):
        return self.variant

    def is_variable(self):
        return self.variable

    def children_ids(self):
        return []

    def variation_attributes(self):
        return dict(self.attributes)


class FakeCatalog:
    def __init__(self, *products):
        self.products = {p.pk: p for p in products}
        self.lookups = []

    def get_product(self, product_id):
        self.lookups.append(product_id)
        return self.products.get(product_id)


class FakeCart:
    """In-memory cart keyed like the session cart: one line per product/variant."""

    def __init__(self, quantities=None):
        self.lines = {}
        self.added = []
        for item_id, qty in (quantities or {}).items():
            self.lines[f"{item_id}:0"] = [item_id, qty]

    def list_lines(self):
        return [(key, item_id, qty) for key, (item_id, qty) in self.lines.items()]

    def set_quantity(self, line_key, quantity):
        self.lines[line_key][1] = quantity

    def remove_line(self, line_key):
        del self.lines[line_key]

    def add_line(self, product_id, quantity, variant_id=None, attributes=None):
        self.added.append((product_id, quantity, variant_id, attributes))
        key = f"{product_id}:{variant_id or 0}"
        self.lines[key] = [variant_id or product_id, quantity]
        return key

    def quantities(self):
        return {item_id: qty for item_id, qty in self.lines.values()}


@pytest.fixture
def fake_product():
    return FakeProduct


@pytest.fixture
def fake_catalog():
    return FakeCatalog


@pytest.fixture
def fake_cart():
    return FakeCart


@pytest.fixture
def user(django_user_model):
    return django_user_model.objects.create_user(username="shopper", password="pw-shopper-1")


@pytest.fixture
def other_user(django_user_model):
    return django_user_model.objects.create_user(username="other", password="pw-other-1")


@pytest.fixture
def shopper_client(client, user):
    client.force_login(user)
    return client


@pytest.fixture
def categories(db):
    return {
        "red": Category.objects.create(name="Red wine"),
        "white": Category.objects.create(name="white wine"),
        "sparkling": Category.objects.create(name="Sparkling"),
    }


@pytest.fixture
def make_product(db):
    def _make(title, price="25.00", *, sku="", category=None, kind=Product.Kind.SIMPLE, parent=None, **extra):
        return Product.objects.create(
            title=title,
            price=Decimal(price),
            sku=sku,
            category=category,
            kind=kind,
            parent=parent,
            **extra,
        )

    return _make
