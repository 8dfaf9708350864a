"""
PDF rendering for quotes (preventivi), site material checklists and material orders.

Fixed elements (header, customer block, totals, footer) are drawn directly on the
canvas; item lists are platypus Tables so long lists wrap onto new pages with the
header row repeated.
"""
import io
import re
import html
import logging

from django.http import HttpResponse
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, Table, TableStyle

from gestionale.catalog.pricing import format_quantity, quantize_money

logger = logging.getLogger(__name__)

PAGE_W, PAGE_H = A4
MARGIN = 15 * mm
CONTENT_W = PAGE_W - 2 * MARGIN

PRIMARY_BLUE = colors.Color(13 / 255, 71 / 255, 161 / 255)
PRIMARY_ORANGE = colors.Color(245 / 255, 124 / 255, 0)
DARK_TEXT = colors.Color(31 / 255, 41 / 255, 55 / 255)
FOOTER_GRAY = colors.Color(100 / 255, 100 / 255, 100 / 255)

# ZapfDingbats glyphs for the checklist "Stato" column
CHECKED_BOX = '3'
EMPTY_BOX = 'o'

EMPTY_CHECKLIST_TEXT = 'Nessun materiale da ordinare specificato.'

CELL_STYLE = ParagraphStyle('cell', fontName='Helvetica', fontSize=9, leading=11, textColor=DARK_TEXT)
CELL_BOLD_STYLE = ParagraphStyle('cell_bold', parent=CELL_STYLE, fontName='Helvetica-Bold')
CHECKLIST_CELL_STYLE = ParagraphStyle('checklist_cell', parent=CELL_STYLE, fontSize=10, leading=12)


def format_money(value):
    return f"€{quantize_money(value):.2f}"


def format_date(value):
    return value.strftime('%d/%m/%Y')


def _y(offset_mm):
    """Canvas y for a distance from the top of the page, in mm"""
    return PAGE_H - offset_mm * mm


def _table_style(extra=None):
    commands = [
        ('BACKGROUND', (0, 0), (-1, 0), PRIMARY_BLUE),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('TEXTCOLOR', (0, 1), (-1, -1), DARK_TEXT),
        ('GRID', (0, 0), (-1, -1), 0.25, colors.Color(0.8, 0.8, 0.8)),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('TOPPADDING', (0, 0), (-1, -1), 2.5 * mm / 2),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 2.5 * mm / 2),
    ]
    return TableStyle(commands + (extra or []))


def _draw_table(c, table, top_y, bottom_limit, on_new_page):
    """
    Draw a table starting at top_y, continuing on new pages as needed.

    on_new_page(c) must start a page and return the y where content may begin.
    Returns the y just below the table.
    """
    remaining = table
    y = top_y
    fresh_page = False
    while True:
        available = y - bottom_limit
        _, height = remaining.wrapOn(c, CONTENT_W, available)
        if height <= available:
            remaining.drawOn(c, MARGIN, y - height)
            return y - height

        parts = remaining.split(CONTENT_W, available)
        if len(parts) < 2:
            if fresh_page:
                # Not even an empty page can hold the next row: draw it clipped and stop
                logger.warning(f"PDF table row taller than a page ({height:.0f}pt), output clipped")
                remaining.drawOn(c, MARGIN, y - height)
                return bottom_limit
            y = on_new_page(c)
            fresh_page = True
            continue

        first, remaining = parts[0], parts[1]
        _, first_height = first.wrapOn(c, CONTENT_W, available)
        first.drawOn(c, MARGIN, y - first_height)
        y = on_new_page(c)
        fresh_page = True


def _cell(text, style=None):
    """Table cell text that wraps inside its column; newlines are kept"""
    markup = html.escape(text or '').replace('\n', '<br/>')
    return Paragraph(markup, style or CELL_STYLE)


def _wrapped_lines(text, font, size, width):
    lines = []
    for paragraph in (text or '').splitlines() or ['']:
        lines.extend(simpleSplit(paragraph, font, size, width) or [''])
    return lines


# ==================== QUOTE ====================

def _draw_quote_footer(c, shop):
    footer_y = 25 * mm
    c.setStrokeColor(DARK_TEXT)
    c.setLineWidth(0.2)
    c.line(MARGIN, footer_y + 5 * mm, PAGE_W - MARGIN, footer_y + 5 * mm)
    c.setFont('Helvetica', 8)
    c.setFillColor(FOOTER_GRAY)
    c.drawString(MARGIN, footer_y, f"Condizioni di pagamento: {shop.payment_conditions}")
    c.drawString(MARGIN, footer_y - 4 * mm, f"IBAN: {shop.iban} - {shop.display_company_name}")
    c.drawString(MARGIN, footer_y - 10 * mm, 'Grazie per la vostra fiducia.')


def _draw_quote_header(c, quote, shop):
    c.setFont('Helvetica-Bold', 18)
    c.setFillColor(PRIMARY_BLUE)
    c.drawString(MARGIN, _y(20), shop.display_company_name.upper())

    c.setFont('Helvetica', 10)
    c.setFillColor(DARK_TEXT)
    c.drawString(MARGIN, _y(27), shop.description)
    c.drawString(MARGIN, _y(32), f"Codice Fiscale: {shop.tax_code}")

    c.setFont('Helvetica-Bold', 22)
    c.drawRightString(PAGE_W - MARGIN, _y(25), 'PREVENTIVO')
    c.setFont('Helvetica', 10)
    c.drawRightString(PAGE_W - MARGIN, _y(32), f"Numero: {quote.quote_number}")
    c.drawRightString(PAGE_W - MARGIN, _y(37), f"Data: {format_date(quote.date)}")

    c.setStrokeColor(DARK_TEXT)
    c.setLineWidth(0.5)
    c.line(MARGIN, _y(45), PAGE_W - MARGIN, _y(45))


def _draw_quote_customer(c, quote):
    customer = quote.customer
    c.setFillColor(DARK_TEXT)
    c.setFont('Helvetica-Bold', 10)
    c.drawString(MARGIN, _y(55), 'CLIENTE')
    c.setFont('Helvetica', 10)
    c.drawString(MARGIN, _y(60), customer.company_name)
    c.drawString(MARGIN, _y(65), customer.address)
    c.drawString(MARGIN, _y(70), customer.city_line)
    c.drawString(MARGIN, _y(75), f"P.IVA / CF: {customer.vat_number} / {customer.tax_code}")

    if quote.site_id:
        c.setFont('Helvetica-Oblique', 10)
        c.drawString(MARGIN, _y(82), f"Cantiere: {quote.site.name}, {quote.site.address}")


def _draw_quote_totals(c, quote, y):
    """Orange box with taxable amount, VAT (when included) and grand total; returns y below it"""
    row_h = 7 * mm
    box_w = 80 * mm
    box_x = PAGE_W - MARGIN - box_w
    rows = [('Totale Imponibile', quote.subtotal, 'Helvetica')]
    if quote.include_vat:
        rows.append(('Totale I.V.A.', quote.tax, 'Helvetica'))
    rows.append(('Totale Preventivo', quote.total, 'Helvetica-Bold'))

    top = y - 10 * mm
    box_h = row_h * len(rows)
    c.setFillColor(PRIMARY_ORANGE)
    c.rect(box_x, top - box_h, box_w, box_h, fill=1, stroke=0)

    c.setFillColor(DARK_TEXT)
    for index, (label, value, font) in enumerate(rows):
        baseline = top - index * row_h - 5 * mm
        c.setFont(font, 10)
        c.drawString(box_x + 5 * mm, baseline, label)
        c.drawRightString(PAGE_W - MARGIN, baseline, format_money(value))
    return top - box_h


def render_quote_pdf(quote, shop):
    """Render a saved quote; returns the PDF bytes"""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(f"Preventivo {quote.quote_number}")
    c.setAuthor(shop.display_company_name)
    bottom_limit = 35 * mm

    def new_page(c):
        _draw_quote_footer(c, shop)
        c.showPage()
        return PAGE_H - MARGIN

    _draw_quote_header(c, quote, shop)
    _draw_quote_customer(c, quote)

    rows = [['Descrizione', 'Coll.', 'Prezzo Unit', 'Totali']]
    for item in quote.items.all():
        rows.append([
            _cell(item.product_name, CELL_BOLD_STYLE),
            format_quantity(item.quantity),
            format_money(item.unit_price),
            format_money(item.get_line_total()),
        ])
    table = Table(rows, colWidths=[CONTENT_W - 80 * mm, 20 * mm, 30 * mm, 30 * mm], repeatRows=1, splitInRow=1)
    table.setStyle(_table_style([
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('ALIGN', (1, 1), (1, -1), 'CENTER'),
        ('ALIGN', (2, 1), (3, -1), 'RIGHT'),
    ]))
    y = _draw_table(c, table, _y(90), bottom_limit, new_page)

    totals_h = 10 * mm + 7 * mm * 3
    if y - totals_h < bottom_limit:
        y = new_page(c)
    y = _draw_quote_totals(c, quote, y)

    if quote.notes:
        lines = _wrapped_lines(quote.notes, 'Helvetica', 10, CONTENT_W)
        y -= 10 * mm
        if y - (len(lines) + 1) * 5 * mm < bottom_limit:
            y = new_page(c)
        c.setFillColor(DARK_TEXT)
        c.setFont('Helvetica-Bold', 10)
        c.drawString(MARGIN, y, 'Note:')
        c.setFont('Helvetica', 10)
        for line in lines:
            y -= 5 * mm
            if y < bottom_limit:
                y = new_page(c) - 5 * mm
                c.setFillColor(DARK_TEXT)
                c.setFont('Helvetica', 10)
            c.drawString(MARGIN, y, line)

    _draw_quote_footer(c, shop)
    c.save()
    logger.debug(f"Rendered quote PDF {quote.quote_number}")
    return buffer.getvalue()


# ==================== SITE CHECKLIST ====================

def _draw_checklist_footer(c, shop):
    footer_y = 15 * mm
    c.setStrokeColor(DARK_TEXT)
    c.setLineWidth(0.2)
    c.line(MARGIN, footer_y + 5 * mm, PAGE_W - MARGIN, footer_y + 5 * mm)
    c.setFont('Helvetica', 8)
    c.setFillColor(FOOTER_GRAY)
    c.drawString(MARGIN, footer_y, f"Lista d'ordine generata da {shop.name}")


def render_checklist_pdf(site, shop, print_date=None):
    """Render the material checklist of a construction site; returns the PDF bytes"""
    print_date = print_date or timezone.localdate()
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(f"Lista materiali {site.name}")
    c.setAuthor(shop.name)

    def new_page(c):
        _draw_checklist_footer(c, shop)
        c.showPage()
        return PAGE_H - MARGIN

    c.setFont('Helvetica-Bold', 18)
    c.setFillColor(PRIMARY_BLUE)
    c.drawString(MARGIN, _y(20), shop.name)
    c.setFont('Helvetica-Bold', 22)
    c.drawRightString(PAGE_W - MARGIN, _y(25), 'LISTA MATERIALI CANTIERE')
    c.setFont('Helvetica', 10)
    c.drawRightString(PAGE_W - MARGIN, _y(32), f"Data: {format_date(print_date)}")
    c.setStrokeColor(DARK_TEXT)
    c.setLineWidth(0.5)
    c.line(MARGIN, _y(45), PAGE_W - MARGIN, _y(45))

    c.setFillColor(DARK_TEXT)
    c.setFont('Helvetica-Bold', 10)
    c.drawString(MARGIN, _y(55), 'CLIENTE:')
    c.setFont('Helvetica', 10)
    c.drawString(MARGIN + 20 * mm, _y(55), site.customer.company_name)
    c.setFont('Helvetica-Bold', 10)
    c.drawString(MARGIN, _y(62), 'CANTIERE:')
    c.setFont('Helvetica', 10)
    c.drawString(MARGIN + 22 * mm, _y(62), site.name)
    c.drawString(MARGIN, _y(68), site.address)

    rows = [['Stato', 'Codice', 'Prodotto', 'Qtà', 'Note']]
    materials = list(site.materials.select_related('product'))
    for material in materials:
        if material.product is not None:
            code, name = material.product.code, material.product.name
        else:
            code, name = 'N/D', material.text or 'Prodotto non trovato'
        rows.append([
            CHECKED_BOX if material.purchased else EMPTY_BOX,
            _cell(code, CHECKLIST_CELL_STYLE),
            _cell(name, CHECKLIST_CELL_STYLE),
            format_quantity(material.quantity),
            '',
        ])

    extra = [
        ('ALIGN', (0, 0), (0, -1), 'CENTER'),
        ('ALIGN', (3, 0), (3, -1), 'CENTER'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
    ]
    if materials:
        extra += [
            ('FONTNAME', (0, 1), (0, -1), 'ZapfDingbats'),
            ('FONTSIZE', (0, 1), (0, -1), 14),
        ]
    else:
        rows.append([EMPTY_CHECKLIST_TEXT, '', '', '', ''])
        extra += [
            ('SPAN', (0, 1), (-1, 1)),
            ('ALIGN', (0, 1), (-1, 1), 'CENTER'),
            ('FONTNAME', (0, 1), (-1, 1), 'Helvetica-Oblique'),
        ]

    table = Table(rows, colWidths=[15 * mm, 30 * mm, CONTENT_W - 100 * mm, 15 * mm, 40 * mm], repeatRows=1, splitInRow=1)
    table.setStyle(_table_style(extra))
    _draw_table(c, table, _y(80), 25 * mm, new_page)

    _draw_checklist_footer(c, shop)
    c.save()
    return buffer.getvalue()


# ==================== MATERIAL ORDER ====================

def render_order_pdf(order, shop):
    """
    Render a material order; returns the PDF bytes.

    order is a dict with customer, site (or None), date, items
    ([{code, name, quantity, unit_price, line_total}]) and total.
    """
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(f"Ordine materiali {order['date'].isoformat()}")
    c.setAuthor(shop.name)

    def new_page(c):
        c.showPage()
        return PAGE_H - MARGIN

    c.setFont('Helvetica-Bold', 18)
    c.setFillColor(PRIMARY_BLUE)
    c.drawString(MARGIN, _y(20), shop.name)
    c.setFont('Helvetica', 10)
    c.setFillColor(DARK_TEXT)
    c.drawString(MARGIN, _y(27), shop.description)
    c.setFont('Helvetica-Bold', 22)
    c.drawRightString(PAGE_W - MARGIN, _y(25), 'ORDINE MATERIALI')
    c.setFont('Helvetica', 10)
    c.drawRightString(PAGE_W - MARGIN, _y(32), f"Data: {format_date(order['date'])}")
    c.setStrokeColor(DARK_TEXT)
    c.setLineWidth(0.5)
    c.line(MARGIN, _y(45), PAGE_W - MARGIN, _y(45))

    c.setFont('Helvetica-Bold', 10)
    c.drawString(MARGIN, _y(55), 'DESTINAZIONE MERCE')
    c.setFont('Helvetica', 10)
    site = order.get('site')
    if site is not None:
        c.drawString(MARGIN, _y(60), f"Cantiere: {site.name}")
        c.drawString(MARGIN, _y(65), site.address)
    else:
        c.drawString(MARGIN, _y(60), f"Cliente: {order['customer'].company_name}")
        c.drawString(MARGIN, _y(65), order['customer'].address)

    rows = [['Codice', 'Descrizione', 'Qtà', 'Prezzo Unit.', 'Totale']]
    for item in order['items']:
        rows.append([
            _cell(item['code']),
            _cell(item['name']),
            format_quantity(item['quantity']),
            format_money(item['unit_price']),
            format_money(item['line_total']),
        ])
    table = Table(rows, colWidths=[30 * mm, CONTENT_W - 105 * mm, 15 * mm, 30 * mm, 30 * mm], repeatRows=1, splitInRow=1)
    table.setStyle(_table_style([
        ('ALIGN', (2, 1), (2, -1), 'CENTER'),
        ('ALIGN', (3, 1), (4, -1), 'RIGHT'),
    ]))
    y = _draw_table(c, table, _y(80), MARGIN, new_page)

    y -= 10 * mm
    if y < MARGIN:
        y = new_page(c) - 10 * mm
    c.setFillColor(DARK_TEXT)
    c.setFont('Helvetica-Bold', 12)
    c.drawRightString(PAGE_W - MARGIN, y, f"Totale Ordine: {format_money(order['total'])}")

    c.save()
    return buffer.getvalue()


def pdf_response(content, filename, inline=False):
    """Wrap rendered PDF bytes in a download (or inline preview) response"""
    response = HttpResponse(content, content_type='application/pdf')
    disposition = 'inline' if inline else 'attachment'
    response['Content-Disposition'] = f'{disposition}; filename="{filename}"'
    return response


def quote_filename(quote):
    return f"Preventivo-{quote.quote_number}.pdf"


def checklist_filename(site):
    name = re.sub(r'\s+', '_', site.name.strip())
    return f"ListaMateriali-{name}.pdf"


def order_filename(order_date):
    return f"Ordine-{order_date.isoformat()}.pdf"
