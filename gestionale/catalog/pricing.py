"""Price arithmetic shared by products, quotes, purchases and orders"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

TWO_PLACES = Decimal('0.01')
HUNDRED = Decimal('100')


def to_decimal(value, default=Decimal('0')):
    """Convert user or model input (str, int, float, Decimal, None) to Decimal"""
    if value is None or value == '':
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip().replace(',', '.'))
    except (InvalidOperation, ValueError):
        return default


def quantize_money(value):
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def selling_price_from_margin(purchase_price, profit_margin):
    """purchase × (1 + margin/100), rounded to cents"""
    purchase_price = to_decimal(purchase_price)
    profit_margin = to_decimal(profit_margin)
    return quantize_money(purchase_price * (1 + profit_margin / HUNDRED))


def margin_percentage(purchase_price, selling_price):
    """Markup over the purchase price in %, or None when the purchase price is zero"""
    purchase_price = to_decimal(purchase_price)
    if purchase_price == 0:
        return None
    selling_price = to_decimal(selling_price)
    return quantize_money((selling_price - purchase_price) / purchase_price * HUNDRED)


def format_quantity(value):
    """Render a quantity without trailing zeros: 10.000 -> '10', 2.500 -> '2.5'"""
    normalized = to_decimal(value).normalize()
    return format(normalized, 'f')
