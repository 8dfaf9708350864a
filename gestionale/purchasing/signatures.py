"""Signatures identifying an uploaded supplier document, for duplicate detection"""
from gestionale.catalog.pricing import format_quantity


def create_document_signature(supplier, document_date, products):
    """
    Build a stable signature: "<supplier>|<date>|<code:qty;code:qty;...>".

    The supplier is trimmed and lower-cased, lines are sorted so the order in the
    document does not matter, and products without a code count as "N/A".
    """
    lines = []
    for product in products:
        code = (product.get('code') or '').strip() or 'N/A'
        lines.append(f"{code}:{format_quantity(product.get('quantity'))}")
    return f"{(supplier or '').strip().lower()}|{document_date}|{';'.join(sorted(lines))}"
