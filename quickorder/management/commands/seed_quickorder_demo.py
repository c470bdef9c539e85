from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from catalog.models import Category
from favorites.models import PriceList, PriceListEntry, WishlistItem
from products.models import Product


# (category, title, sku, price). Prices under the batch threshold get a step of 6.
SIMPLE_PRODUCTS = [
    ("Red wine", "Rioja Crianza", "RW-RIOJA-CR", "14.50"),
    ("Red wine", "Barolo DOCG", "RW-BAROLO", "42.00"),
    ("White wine", "Sauvignon Blanc", "WW-SAUV-BL", "11.95"),
    ("White wine", "Chablis Premier Cru", "WW-CHABLIS-1C", "29.00"),
    ("Sparkling", "Cava Brut", "SP-CAVA-BRUT", "9.75"),
]

# (category, title, sku, price, [(attributes, sku, price)])
VARIABLE_PRODUCTS = [
    (
        "Sparkling",
        "Champagne Brut",
        "SP-CHAMP",
        "38.00",
        [
            ({"size": "75cl"}, "SP-CHAMP-75", "38.00"),
            ({"size": "150cl"}, "SP-CHAMP-150", "82.00"),
        ],
    ),
]

PRICE_LIST_NAME = "Demo trade prices"
PRICE_LIST_SKUS = ["RW-BAROLO", "WW-CHABLIS-1C", "SP-CHAMP-75"]
WISHLIST_SKUS = ["RW-RIOJA-CR", "SP-CAVA-BRUT"]


def _category(name: str, sort_order: int) -> tuple[Category, bool]:
    obj = Category.objects.filter(parent=None, name=name).first()
    created = obj is None
    if created:
        obj = Category(name=name, slug="")
    obj.is_active = True
    obj.sort_order = sort_order
    obj.save()
    return obj, created


def _product(*, sku: str, defaults: dict) -> tuple[Product, bool]:
    obj = Product.objects.filter(sku=sku).order_by("pk").first()
    created = obj is None
    if created:
        obj = Product(sku=sku)
    for field, value in defaults.items():
        setattr(obj, field, value)
    obj.is_active = True
    obj.full_clean()
    obj.save()
    return obj, created


class Command(BaseCommand):
    help = "Seed demo categories, products and an order list for one user (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("username", help="User whose order list gets the demo products.")
        parser.add_argument("--dry-run", action="store_true", help="Do not write changes.")

    @transaction.atomic
    def handle(self, *args, **options):
        dry_run = bool(options["dry_run"])
        username = options["username"]

        user = get_user_model().objects.filter(username=username).first()
        if user is None:
            raise CommandError(f"User {username!r} does not exist.")

        if dry_run:
            for cat, title, sku, price in SIMPLE_PRODUCTS:
                self.stdout.write(f"[DRY] {cat}: {title} ({sku}) {price}")
            for cat, title, sku, price, variations in VARIABLE_PRODUCTS:
                self.stdout.write(f"[DRY] {cat}: {title} ({sku}) with {len(variations)} variations")
            self.stdout.write(self.style.SUCCESS("Dry run, nothing written."))
            return

        created = 0
        categories: dict[str, Category] = {}
        names = sorted({row[0] for row in SIMPLE_PRODUCTS} | {row[0] for row in VARIABLE_PRODUCTS})
        for i, name in enumerate(names, start=1):
            categories[name], was_created = _category(name, sort_order=i * 10)
            created += int(was_created)

        for cat, title, sku, price in SIMPLE_PRODUCTS:
            _, was_created = _product(
                sku=sku,
                defaults={
                    "title": title,
                    "kind": Product.Kind.SIMPLE,
                    "category": categories[cat],
                    "price": Decimal(price),
                },
            )
            created += int(was_created)

        for cat, title, sku, price, variations in VARIABLE_PRODUCTS:
            parent, was_created = _product(
                sku=sku,
                defaults={
                    "title": title,
                    "kind": Product.Kind.VARIABLE,
                    "category": categories[cat],
                    "price": Decimal(price),
                },
            )
            created += int(was_created)
            for attributes, v_sku, v_price in variations:
                _, was_created = _product(
                    sku=v_sku,
                    defaults={
                        "title": title,
                        "kind": Product.Kind.VARIATION,
                        "parent": parent,
                        "attributes": attributes,
                        "price": Decimal(v_price),
                    },
                )
                created += int(was_created)

        price_list, _ = PriceList.objects.get_or_create(name=PRICE_LIST_NAME)
        price_list.customers.add(user)
        for i, sku in enumerate(PRICE_LIST_SKUS):
            PriceListEntry.objects.update_or_create(price_list=price_list, sku=sku, defaults={"sort_order": i})

        for product in Product.objects.filter(sku__in=WISHLIST_SKUS):
            WishlistItem.objects.get_or_create(user=user, product=product)

        self.stdout.write(self.style.SUCCESS(f"Done. created={created} user={user.username}"))
