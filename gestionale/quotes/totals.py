"""
Quote arithmetic: merging requested lines and computing subtotal, VAT and total.

Each line is taxed at its category's VAT rate, so a quote may mix rates; the
effective rate stored on the quote is tax / subtotal.
"""
from decimal import Decimal

from gestionale.catalog.pricing import HUNDRED, quantize_money
from gestionale.core.models import DEFAULT_VAT_RATE


def merge_lines(lines):
    """
    Merge [(product, quantity), ...] so each product appears once.

    Quantities of repeated products are added; the order of first appearance is kept.
    """
    merged = {}
    for product, quantity in lines:
        if product.pk in merged:
            merged[product.pk] = (product, merged[product.pk][1] + quantity)
        else:
            merged[product.pk] = (product, quantity)
    return list(merged.values())


def line_vat_rate(product, shop_vat_rate=None):
    """VAT rate of the product's category, falling back to the shop rate and then 22%"""
    if product.category_id is not None:
        return product.category.vat_rate
    if shop_vat_rate is not None:
        return shop_vat_rate
    return DEFAULT_VAT_RATE


def compute_quote_totals(lines, include_vat=True, shop_vat_rate=None):
    """
    Compute the totals of a quote.

    lines: [(product, quantity), ...]; repeated products are merged first.
    Returns a dict with the priced items plus subtotal, tax, total and the
    effective vat_rate. Amounts are rounded half-up to cents only at the end.
    """
    items = []
    subtotal = Decimal('0')
    tax = Decimal('0')
    for product, quantity in merge_lines(lines):
        rate = line_vat_rate(product, shop_vat_rate)
        line_total = product.selling_price * quantity
        subtotal += line_total
        if include_vat:
            tax += line_total * rate / HUNDRED
        items.append({
            'product': product,
            'product_code': product.code,
            'product_name': product.name,
            'unit_price': product.selling_price,
            'vat_rate': rate,
            'quantity': quantity,
            'line_total': quantize_money(line_total),
        })

    effective_rate = tax / subtotal * HUNDRED if subtotal > 0 else Decimal('0')
    return {
        'items': items,
        'subtotal': quantize_money(subtotal),
        'tax': quantize_money(tax),
        'total': quantize_money(subtotal + tax),
        'vat_rate': quantize_money(effective_rate),
    }
