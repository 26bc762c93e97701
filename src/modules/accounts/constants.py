"""Account domain constants."""

from django.db import models


class Role(models.TextChoices):
    BUYER = "buyer", "Buyer"
    SELLER = "seller", "Seller"
    SHIPPER = "shipper", "Shipper"
    ADMIN = "admin", "Admin"
