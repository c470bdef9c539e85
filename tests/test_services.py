from __future__ import annotations

import pytest
from django.contrib.auth.models import AnonymousUser

from favorites.models import PriceList, PriceListEntry, WishlistItem
from favorites.services import add_to_wishlist, order_list_product_ids
from products.models import Product
from quickorder.adapters import ProductCatalog
from quickorder.quantities import StepPolicy
from quickorder.reconcile import Reconciler
from quickorder.services import (
    CART_GROUP_LABEL,
    OTHER_PRODUCTS_LABEL,
    build_quick_order_page,
    list_products_for_user,
)
from quickorder.snapshot import CartSnapshot, SnapshotCodec

pytestmark = pytest.mark.django_db

IDENTITY = "1:sess"


@pytest.fixture
def reconciler():
    return Reconciler(codec=SnapshotCodec(), catalog=ProductCatalog(), step_policy=StepPolicy())


@pytest.fixture
def assortment(categories, make_product):
    champagne = make_product(
        "Champagne Brut", "38.00", sku="SP-CHAMP", category=categories["sparkling"], kind=Product.Kind.VARIABLE
    )
    return {
        "rioja": make_product("Rioja Crianza", "14.50", sku="RW-RIOJA", category=categories["red"]),
        "barolo": make_product("barolo DOCG", "42.00", sku="RW-BAROLO", category=categories["red"]),
        "chablis": make_product("Chablis", "29.00", sku="WW-CHABLIS", category=categories["white"]),
        "loose": make_product("Corkscrew", "8.00", sku="ACC-CORK"),
        "retired": make_product("Retired wine", "9.00", sku="OLD-1", is_active=False),
        "champagne": champagne,
        "champagne_75": make_product(
            "Champagne Brut",
            "38.00",
            sku="SP-CHAMP-75",
            kind=Product.Kind.VARIATION,
            parent=champagne,
            attributes={"size": "75cl"},
        ),
    }


def _price_list(user, *skus, active=True):
    price_list = PriceList.objects.create(name=f"List {len(skus)}", is_active=active)
    price_list.customers.add(user)
    for i, sku in enumerate(skus):
        PriceListEntry.objects.create(price_list=price_list, sku=sku, sort_order=i)
    return price_list


def test_order_list_combines_wishlist_and_price_lists(user, other_user, assortment):
    WishlistItem.objects.create(user=user, product=assortment["chablis"])
    WishlistItem.objects.create(user=other_user, product=assortment["loose"])
    _price_list(user, "RW-BAROLO", "WW-CHABLIS", "UNKNOWN-SKU", "SP-CHAMP-75")
    _price_list(user, "ACC-CORK", active=False)

    assert order_list_product_ids(user) == [
        assortment["chablis"].pk,
        assortment["barolo"].pk,
        assortment["champagne_75"].pk,
    ]


def test_order_list_is_empty_for_anonymous_users():
    assert order_list_product_ids(AnonymousUser()) == []


def test_add_to_wishlist_only_adds_missing_known_products(user, assortment):
    WishlistItem.objects.create(user=user, product=assortment["rioja"])

    added = add_to_wishlist(user, [assortment["rioja"].pk, assortment["barolo"].pk, 987654])

    assert added == 1
    assert set(WishlistItem.objects.filter(user=user).values_list("product_id", flat=True)) == {
        assortment["rioja"].pk,
        assortment["barolo"].pk,
    }


def test_inactive_products_are_left_off_the_list(user, assortment):
    for key in ("retired", "rioja"):
        WishlistItem.objects.create(user=user, product=assortment[key])

    assert list(list_products_for_user(user)) == [assortment["rioja"].pk]


def test_page_groups_rows_by_category(user, assortment, fake_cart, reconciler):
    for key in ("chablis", "barolo", "loose", "rioja", "champagne_75"):
        WishlistItem.objects.create(user=user, product=assortment[key])

    page = build_quick_order_page(user=user, cart=fake_cart(), session_identity=IDENTITY, reconciler=reconciler)

    labels = [group.label for group in page.groups]
    assert labels == [OTHER_PRODUCTS_LABEL, "Red wine", "Sparkling", "white wine"]

    red = page.groups[1]
    assert [row.display.title for row in red.rows] == ["barolo DOCG", "Rioja Crianza"]
    assert [row.step for row in red.rows] == [1, 6]

    sparkling = page.groups[2]
    # variations are listed under their parent's category
    assert sparkling.rows[0].product == assortment["champagne_75"]
    assert sparkling.rows[0].display == assortment["champagne"]
    assert not page.is_empty


def test_cart_rows_come_first_including_products_off_the_list(user, assortment, fake_cart, reconciler):
    WishlistItem.objects.create(user=user, product=assortment["rioja"])
    WishlistItem.objects.create(user=user, product=assortment["chablis"])
    cart = fake_cart({assortment["chablis"].pk: 1, assortment["loose"].pk: 6})

    page = build_quick_order_page(user=user, cart=cart, session_identity=IDENTITY, reconciler=reconciler)

    cart_group = page.groups[0]
    assert cart_group.is_cart
    assert cart_group.label == CART_GROUP_LABEL
    assert {row.product.pk: row.cart_quantity for row in cart_group.rows} == {
        assortment["chablis"].pk: 1,
        assortment["loose"].pk: 6,
    }
    rest = [row.product.pk for group in page.groups[1:] for row in group.rows]
    assert rest == [assortment["rioja"].pk]


def test_token_vouches_for_the_rendered_cart(user, assortment, fake_cart, reconciler):
    WishlistItem.objects.create(user=user, product=assortment["rioja"])
    cart = fake_cart({assortment["rioja"].pk: 12})

    page = build_quick_order_page(user=user, cart=cart, session_identity=IDENTITY, reconciler=reconciler)

    decoded = reconciler.codec.decode(page.token.payload, page.token.tag, IDENTITY)
    assert decoded == CartSnapshot.from_mapping({assortment["rioja"].pk: 12})


def test_page_without_list_or_cart_is_empty(user, fake_cart, reconciler):
    page = build_quick_order_page(user=user, cart=fake_cart(), session_identity=IDENTITY, reconciler=reconciler)
    assert page.is_empty
