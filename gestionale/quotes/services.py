from django.db import IntegrityError, transaction
from django.utils import timezone
import logging

from gestionale.core.models import ShopInfo
from .models import Quote, QuoteItem
from .totals import compute_quote_totals

logger = logging.getLogger(__name__)

QUOTE_NUMBER_PREFIX = 'PREV'
QUOTE_NUMBER_ATTEMPTS = 3


def next_quote_number(year):
    """
    Next number of the yearly sequence: PREV-<year>-001, PREV-<year>-002, ...

    Takes the highest existing suffix of the year plus one; call inside the
    transaction that saves the quote.
    """
    prefix = f"{QUOTE_NUMBER_PREFIX}-{year}-"
    numbers = (
        Quote.objects.select_for_update()
        .filter(quote_number__startswith=prefix)
        .values_list('quote_number', flat=True)
    )
    highest = 0
    for number in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:03d}"


def price_quote(lines, include_vat=True):
    """Totals for [(product, quantity), ...] using the shop's VAT rate as fallback"""
    return compute_quote_totals(lines, include_vat=include_vat, shop_vat_rate=ShopInfo.get_solo().vat_rate)


def _save_quote(customer, totals, site, date, notes, include_vat, user):
    with transaction.atomic():
        quote = Quote.objects.create(
            quote_number=next_quote_number(date.year),
            customer=customer,
            site=site,
            date=date,
            notes=notes,
            include_vat=include_vat,
            subtotal=totals['subtotal'],
            tax=totals['tax'],
            total=totals['total'],
            vat_rate=totals['vat_rate'],
            created_by=user if user and user.is_authenticated else None,
        )
        QuoteItem.objects.bulk_create([
            QuoteItem(
                quote=quote,
                product=item['product'],
                product_code=item['product_code'],
                product_name=item['product_name'],
                unit_price=item['unit_price'],
                vat_rate=item['vat_rate'],
                quantity=item['quantity'],
            )
            for item in totals['items']
        ])
    return quote


def create_quote(customer, lines, site=None, date=None, notes='', include_vat=True, user=None):
    """
    Price, number and save a quote with its item snapshots.

    A concurrent save can take the same number (the first quote of a year has no
    row to lock); the unique constraint rejects it and the save is retried with
    the next free number.
    """
    date = date or timezone.localdate()
    totals = price_quote(lines, include_vat=include_vat)

    for attempt in range(1, QUOTE_NUMBER_ATTEMPTS + 1):
        try:
            quote = _save_quote(customer, totals, site, date, notes, include_vat, user)
            break
        except IntegrityError:
            if attempt == QUOTE_NUMBER_ATTEMPTS:
                raise
            logger.warning(f"Quote number collision for {date.year}, retrying ({attempt}/{QUOTE_NUMBER_ATTEMPTS})")

    logger.info(f"Created quote {quote.quote_number} for {customer.company_name}: total {quote.total}")
    return quote
