from __future__ import annotations

import pytest
from django.urls import reverse

from cart.cart import CART_SESSION_KEY
from favorites.models import WishlistItem
from products.models import Product
from quickorder import views
from quickorder.quantities import MAX_QUANTITY
from quickorder.reconcile import CollaboratorUnavailable
from quickorder.snapshot import CartSnapshot, SnapshotCodec

pytestmark = pytest.mark.django_db

FORM_URL = "/quick-order/"


@pytest.fixture
def cheap(make_product, categories):
    return make_product("Cava Brut", "9.75", sku="SP-CAVA", category=categories["sparkling"])


@pytest.fixture
def pricey(make_product, categories):
    return make_product("Barolo", "42.00", sku="RW-BAROLO", category=categories["red"])


@pytest.fixture
def listed(user, cheap, pricey):
    WishlistItem.objects.create(user=user, product=cheap)
    WishlistItem.objects.create(user=user, product=pricey)


def _cart_quantities(client):
    data = client.session.get(CART_SESSION_KEY, {})
    return {entry["variant_id"] or entry["product_id"]: entry["qty"] for entry in data.values()}


def _form_token(client):
    response = client.get(FORM_URL)
    assert response.status_code == 200
    return response.context["cart_state"], response.context["cart_state_hash"]


def _submit(client, state, state_hash, quantities, **extra):
    data = {"action": "update_cart", "cart_state": state, "cart_state_hash": state_hash, **extra}
    data.update({f"quantities[{pid}]": qty for pid, qty in quantities.items()})
    return client.post(FORM_URL, data)


def test_url_names_resolve():
    assert reverse("quickorder:form") == FORM_URL
    assert reverse("cart:detail") == "/cart/"


def test_login_required(client):
    response = client.get(FORM_URL)
    assert response.status_code == 302
    assert response["Location"].startswith("/admin/login/")


def test_empty_list_shows_contact_page(shopper_client, settings):
    settings.QUICKORDER_CONTACT_EMAIL = "trade@example.com"

    response = shopper_client.get(FORM_URL)

    assert response.status_code == 200
    assert "quickorder/empty.html" in [t.name for t in response.templates]
    assert b"trade@example.com" in response.content


def test_form_carries_token_for_this_session(shopper_client, user, listed, cheap):
    state, state_hash = _form_token(shopper_client)

    identity = f"{user.pk}:{shopper_client.session.session_key}"
    assert SnapshotCodec().decode(state, state_hash, identity) == CartSnapshot()

    response = shopper_client.get(FORM_URL)
    content = response.content.decode()
    assert f'name="quantities[{cheap.pk}]"' in content
    assert 'step="6"' in content
    assert "X-Request-ID" in response


def test_submit_updates_cart_and_wishlist(shopper_client, user, listed, cheap, pricey, make_product):
    extra = make_product("Rioja", "25.00")
    state, state_hash = _form_token(shopper_client)

    response = _submit(shopper_client, state, state_hash, {cheap.pk: "7", pricey.pk: "0", extra.pk: "2"})

    assert response.status_code == 302
    assert response["Location"] == "/cart/"
    assert _cart_quantities(shopper_client) == {cheap.pk: 12, extra.pk: 2}
    assert WishlistItem.objects.filter(user=user, product=extra).exists()

    follow = shopper_client.get(response["Location"])
    assert views.UPDATED_NOTICE in follow.content.decode()


def test_cart_changed_after_render_is_not_applied(shopper_client, listed, cheap, pricey):
    state, state_hash = _form_token(shopper_client)
    shopper_client.post(reverse("cart:add"), {"product_id": pricey.pk, "quantity": "1"})

    response = _submit(shopper_client, state, state_hash, {cheap.pk: "6"})

    assert response.status_code == 302
    assert response["Location"] == FORM_URL
    assert _cart_quantities(shopper_client) == {pricey.pk: 1}

    follow = shopper_client.get(FORM_URL)
    assert "Your cart changed" in follow.content.decode()


def test_tampered_token_is_not_applied(shopper_client, listed, cheap):
    state, state_hash = _form_token(shopper_client)
    forged = SnapshotCodec(secret="not-our-secret").encode(CartSnapshot(), "x").tag

    response = _submit(shopper_client, state, forged, {cheap.pk: "6"}, next="/quick-order/?from=table")

    assert response.status_code == 302
    assert response["Location"] == "/quick-order/?from=table"
    assert _cart_quantities(shopper_client) == {}


def test_offsite_next_is_ignored(shopper_client, listed, cheap):
    response = _submit(shopper_client, "", "", {cheap.pk: "6"}, next="https://evil.example.com/")
    assert response["Location"] == FORM_URL


def test_token_from_another_session_is_not_applied(client, user, listed, cheap):
    client.force_login(user)
    state, state_hash = _form_token(client)
    client.logout()
    client.force_login(user)

    response = _submit(client, state, state_hash, {cheap.pk: "6"})

    assert response["Location"] == FORM_URL
    assert _cart_quantities(client) == {}


def test_post_without_action_renders_form(shopper_client, listed):
    response = shopper_client.post(FORM_URL, {"action": "something-else"})
    assert response.status_code == 200
    assert "cart_state" in response.context


def test_unavailable_cart_renders_503(shopper_client, listed, monkeypatch):
    monkeypatch.setattr(views, "get_live_cart", lambda request: None)

    assert shopper_client.get(FORM_URL).status_code == 503

    response = _submit(shopper_client, "x", "y", {})
    assert response.status_code == 503
    assert views.UNAVAILABLE_NOTICE in response.content.decode()


def test_unavailable_catalog_renders_503(shopper_client, listed, cheap, monkeypatch):
    state, state_hash = _form_token(shopper_client)

    def broken(self, product_id):
        raise CollaboratorUnavailable("catalog")

    monkeypatch.setattr("quickorder.adapters.ProductCatalog.get_product", broken)

    response = _submit(shopper_client, state, state_hash, {cheap.pk: "6"})

    assert response.status_code == 503
    assert _cart_quantities(shopper_client) == {}


def test_parse_quantity_fields_ignores_other_keys():
    data = {"quantities[12]": "3", "quantities[0]": "1", "quantities[x]": "2", "qty": "9", "quantities[7]": ""}
    assert views.parse_quantity_fields(data) == {12: "3", 7: ""}


def test_submit_is_throttled(shopper_client, listed):
    for _ in range(views.QUICK_ORDER_SUBMIT_RULE.limit):
        _submit(shopper_client, "", "", {})

    response = _submit(shopper_client, "", "", {})

    assert response.status_code == 429
    assert response["Retry-After"]


def _rendered_quantities(response):
    return {
        row.product.pk: str(row.cart_quantity)
        for group in response.context["groups"]
        for row in group.rows
        if row.editable
    }


def test_resubmitting_unchanged_form_keeps_cart(shopper_client, user, make_product, categories):
    parent = make_product("Champagne", "38.00", category=categories["sparkling"], kind=Product.Kind.VARIABLE)
    variation = make_product(
        "Champagne", "38.00", kind=Product.Kind.VARIATION, parent=parent, attributes={"size": "75cl"}
    )
    WishlistItem.objects.create(user=user, product=parent)
    shopper_client.post(reverse("cart:add"), {"product_id": variation.pk, "quantity": "2"})
    before = _cart_quantities(shopper_client)

    response = shopper_client.get(FORM_URL)
    assert f'name="quantities[{parent.pk}]"' not in response.content.decode()
    parent_row = next(row for group in response.context["groups"] for row in group.rows if row.product == parent)
    assert parent_row.cart_quantity == 2
    assert not parent_row.editable

    submit = _submit(
        shopper_client,
        response.context["cart_state"],
        response.context["cart_state_hash"],
        _rendered_quantities(response),
    )

    assert submit["Location"] == "/cart/"
    assert _cart_quantities(shopper_client) == before == {variation.pk: 2}


def test_posted_variable_product_is_not_added(shopper_client, listed, make_product):
    parent = make_product("Champagne", "38.00", kind=Product.Kind.VARIABLE)
    state, state_hash = _form_token(shopper_client)

    _submit(shopper_client, state, state_hash, {parent.pk: "2"})

    assert _cart_quantities(shopper_client) == {}


def test_huge_quantity_is_clamped_not_an_error(shopper_client, listed, cheap, pricey):
    state, state_hash = _form_token(shopper_client)

    response = _submit(shopper_client, state, state_hash, {pricey.pk: "1e5000", cheap.pk: "9" * 5000})

    assert response.status_code == 302
    assert _cart_quantities(shopper_client) == {pricey.pk: MAX_QUANTITY, cheap.pk: 9996}


def test_inactive_product_is_not_added(shopper_client, listed, make_product):
    retired = make_product("Retired wine", "25.00", is_active=False)
    state, state_hash = _form_token(shopper_client)

    response = _submit(shopper_client, state, state_hash, {retired.pk: "3"})

    assert response["Location"] == "/cart/"
    assert _cart_quantities(shopper_client) == {}
    assert not WishlistItem.objects.filter(product=retired).exists()
