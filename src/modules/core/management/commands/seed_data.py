from __future__ import annotations

import random
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from modules.accounts.constants import Role
from modules.catalog.models import ProductSKU
from modules.orders.constants import OrderStatus
from modules.orders.repositories import OrderDjangoRepository


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=30)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users = self._seed_users()
        skus = self._seed_skus(users[Role.SELLER])
        orders_created = self._seed_orders(
            users[Role.BUYER], users[Role.SHIPPER], skus, options["orders"]
        )

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={sum(len(group) for group in users.values())}, "
                f"skus={len(skus)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> dict:
        User = get_user_model()
        seed_users = [
            ("admin", Role.ADMIN, "Alice Admin"),
            ("buyer1", Role.BUYER, "Bob Buyer"),
            ("buyer2", Role.BUYER, "Carol Buyer"),
            ("seller1", Role.SELLER, "Dave Seller"),
            ("seller2", Role.SELLER, "Erin Seller"),
            ("shipper1", Role.SHIPPER, "Frank Shipper"),
        ]
        users: dict = {role: [] for role in Role}
        for username, role, full_name in seed_users:
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(
                    username,
                    email=f"{username}@example.com",
                    password=f"{username}123",
                    role=role,
                    full_name=full_name,
                    address=f"{random.randint(1, 999)} Market Street",
                )
            users[role].append(user)
        return users

    def _seed_skus(self, sellers: list) -> list[ProductSKU]:
        self.stdout.write("Creating SKUs...")
        catalog = [
            ("SKU-0001", "Wireless Mouse", Decimal("24.90")),
            ("SKU-0002", "Mechanical Keyboard", Decimal("89.00")),
            ("SKU-0003", "USB-C Hub", Decimal("39.50")),
            ("SKU-0004", "Laptop Stand", Decimal("45.00")),
            ("SKU-0005", "Desk Lamp", Decimal("29.99")),
            ("SKU-0006", "Notebook A5", Decimal("6.50")),
        ]
        skus: list[ProductSKU] = []
        for index, (barcode, name, price) in enumerate(catalog):
            sku, _ = ProductSKU.objects.get_or_create(
                barcode=barcode,
                defaults={
                    "name": name,
                    "price": price,
                    "seller": sellers[index % len(sellers)],
                },
            )
            skus.append(sku)
        self.stdout.write(self.style.SUCCESS("Creating SKUs... Done!"))
        return skus

    def _seed_orders(
        self, buyers: list, shippers: list, skus: list[ProductSKU], count: int
    ) -> int:
        self.stdout.write("Creating orders...")
        if not buyers or not skus:
            self.stdout.write(self.style.WARNING("Skipping orders (no buyers/SKUs)."))
            return 0

        repository = OrderDjangoRepository(using=settings.ORDERS_DB_ALIAS)
        claimed = {
            OrderStatus.DISPATCHED,
            OrderStatus.DELIVERING,
            OrderStatus.DELIVERED,
            OrderStatus.SHIPPED,
        }
        statuses = list(OrderStatus.values)
        for _ in range(count):
            buyer = random.choice(buyers)
            sku = random.choice(skus)
            status = random.choice(statuses)
            order = repository.create(
                {
                    "buyer_id": buyer.id,
                    "address": buyer.address or "1 Market Street",
                    "items": [
                        {
                            "barcode": sku.barcode,
                            "variation_name": random.choice(["Black", "White", "Blue"]),
                            "quantity": random.randint(1, 4),
                            "price": sku.price,
                        }
                    ],
                }
            )
            repository.set_status(order.id, status)
            if status in claimed and shippers:
                shipper = random.choice(shippers)
                repository.add_delivery_claim(order.id, shipper.id)
                if status == OrderStatus.DELIVERED:
                    repository.finish_delivery_claims(order.id, shipper.id, timezone.now())

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return count
