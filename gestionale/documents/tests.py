"""
Test suite for PDF rendering
Tests: wrapped table cells, rows taller than a page, page breaks
"""
import io
from datetime import date
from decimal import Decimal

from django.test import TestCase
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, Spacer, Table

from gestionale.core.models import ShopInfo
from gestionale.core.test_utils import TestDataFactory
from gestionale.documents.pdf import (
    MARGIN, PAGE_H, _cell, _draw_table, render_checklist_pdf, render_order_pdf, render_quote_pdf,
)
from gestionale.orders.services import build_order


class TableDrawingTests(TestCase):

    def test_cell_escapes_markup_and_keeps_newlines(self):
        cell = _cell('Cavo <3x2.5> & guaina\nrosso')
        self.assertIsInstance(cell, Paragraph)
        self.assertIn('&lt;3x2.5&gt;', cell.text)
        self.assertIn('&amp;', cell.text)

    def test_row_taller_than_page_stops(self):
        c = canvas.Canvas(io.BytesIO(), pagesize=A4)
        table = Table([['Intestazione'], [Spacer(1, PAGE_H * 2)]], repeatRows=1, splitInRow=1)
        new_pages = []

        def new_page(c):
            new_pages.append(1)
            c.showPage()
            return PAGE_H - MARGIN

        y = _draw_table(c, table, PAGE_H - MARGIN, MARGIN, new_page)
        self.assertEqual(y, MARGIN)
        self.assertLessEqual(len(new_pages), 2)


class RenderTests(TestCase):

    def setUp(self):
        self.shop = ShopInfo.get_solo()
        self.customer = TestDataFactory.create_customer()
        self.site = TestDataFactory.create_site(customer=self.customer)

    def test_checklist_with_very_tall_material_text(self):
        TestDataFactory.create_site_material(self.site, text='a\n' * 120)
        content = render_checklist_pdf(self.site, self.shop, print_date=date(2024, 3, 1))
        self.assertTrue(content.startswith(b'%PDF'))

    def test_checklist_with_long_product_name(self):
        product = TestDataFactory.create_product(name='Cavo unipolare ' * 17)
        TestDataFactory.create_site_material(self.site, product=product)
        content = render_checklist_pdf(self.site, self.shop)
        self.assertTrue(content.startswith(b'%PDF'))

    def test_quote_with_multiline_product_name(self):
        product = TestDataFactory.create_product(name='riga\n' * 50, selling_price=Decimal('1.00'))
        quote = TestDataFactory.create_quote(customer=self.customer, items=[(product, 1)], notes='Nota')
        content = render_quote_pdf(quote, self.shop)
        self.assertTrue(content.startswith(b'%PDF'))

    def test_order_with_long_names(self):
        products = [
            TestDataFactory.create_product(name='Tubo corrugato diametro 25 mm ' * 8)
            for _ in range(30)
        ]
        order = build_order(self.customer, [(p, 2) for p in products], date(2024, 3, 1), site=self.site)
        content = render_order_pdf(order, self.shop)
        self.assertTrue(content.startswith(b'%PDF'))
