from decimal import Decimal

from gestionale.catalog.pricing import quantize_money
from gestionale.quotes.totals import merge_lines


def build_order(customer, lines, order_date, site=None):
    """
    Price a material order at purchase prices.

    lines: [(product, quantity), ...]; repeated products are merged.
    Returns the dict rendered by the order PDF.
    """
    items = []
    total = Decimal('0')
    for product, quantity in merge_lines(lines):
        line_total = product.purchase_price * quantity
        total += line_total
        items.append({
            'product': product.id,
            'code': product.code,
            'name': product.name,
            'quantity': quantity,
            'unit_price': product.purchase_price,
            'line_total': quantize_money(line_total),
        })
    return {
        'customer': customer,
        'site': site,
        'date': order_date,
        'items': items,
        'total': quantize_money(total),
    }
