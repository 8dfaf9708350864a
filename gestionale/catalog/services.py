"""
Product upsert by code.

Adding a product whose code already exists (case-insensitive) merges into the
existing row instead of creating a duplicate: name and prices are replaced, the
incoming quantity is added to stock, and the category only changes when a real
(non 'Da Assegnare') category is supplied.
"""
import logging
from decimal import Decimal

from django.db import transaction

from .models import Category, Product
from .pricing import selling_price_from_margin, to_decimal

logger = logging.getLogger(__name__)


@transaction.atomic
def upsert_product(code, name, quantity=Decimal('0'), purchase_price=Decimal('0'),
                   selling_price=None, category=None):
    """
    Create or merge a product by code.

    Returns (product, created).
    """
    code = code.strip()
    name = name.strip()
    quantity = to_decimal(quantity)
    purchase_price = to_decimal(purchase_price)

    existing = Product.objects.select_for_update().filter(code__iexact=code).first()

    if existing is not None:
        if category is not None and not category.is_system:
            existing.category = category
        if selling_price is None:
            selling_price = selling_price_from_margin(purchase_price, existing.category.profit_margin)

        old_quantity = existing.quantity
        existing.name = name
        existing.purchase_price = purchase_price
        existing.selling_price = to_decimal(selling_price)
        existing.quantity = old_quantity + quantity
        existing.save()
        logger.info(f"Merged product {existing.code}: stock {old_quantity} -> {existing.quantity}")
        return existing, False

    if category is None:
        category = Category.get_uncategorized()
    if selling_price is None:
        selling_price = selling_price_from_margin(purchase_price, category.profit_margin)

    product = Product.objects.create(
        code=code,
        name=name,
        category=category,
        quantity=quantity,
        purchase_price=purchase_price,
        selling_price=to_decimal(selling_price),
    )
    logger.info(f"Created product {product.code} in category {category.name}")
    return product, True


@transaction.atomic
def delete_category(category):
    """Delete a category, moving its products to 'Da Assegnare'"""
    uncategorized = Category.get_uncategorized()
    moved = Product.objects.filter(category=category).update(category=uncategorized)
    category.delete()
    return moved
