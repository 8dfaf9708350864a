"""
Management command to load demo data: shop info, categories, products,
customers with their construction sites, purchases and quotes.
Usage: python manage.py seed_demo_data [--clear]
"""
from datetime import date
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from gestionale.core.models import ShopInfo
from gestionale.catalog.models import Category, Product
from gestionale.parties.models import Customer, ConstructionSite
from gestionale.parties.serializers import replace_site_materials
from gestionale.purchasing.models import Purchase, PurchaseItem
from gestionale.quotes.models import Quote
from gestionale.quotes.services import create_quote

CATEGORIES = [
    # name, profit margin %, VAT %
    ('Abbigliamento', Decimal('50'), Decimal('22')),
    ('Elettronica', Decimal('30'), Decimal('22')),
    ('Materiale Elettrico', Decimal('60'), Decimal('10')),
]

PRODUCTS = [
    # category, code, name, quantity, purchase price, selling price
    ('Abbigliamento', 'TSH-001', 'Maglietta Nera', 50, '8.50', '12.75'),
    ('Abbigliamento', 'JNS-004', 'Jeans Slim Fit', 30, '25.00', '37.50'),
    ('Elettronica', 'HDP-002', 'Cuffie Bluetooth', 20, '45.00', '58.50'),
    ('Elettronica', 'MSE-007', 'Mouse Wireless', 100, '12.00', '15.60'),
    ('Materiale Elettrico', 'CAV-01', 'Cavo HDMI 2m', 80, '5.50', '8.80'),
]

CUSTOMERS = [
    {
        'company_name': 'Mario Rossi SRL', 'vat_number': '12345678901', 'tax_code': 'RSSMRA80A01H501Y',
        'address': 'Via Roma 1', 'city': 'Milano', 'postal_code': '20121', 'province': 'MI',
        'email': 'mario@rossi.it', 'phone': '021234567',
    },
    {
        'company_name': 'Bianchi Costruzioni', 'vat_number': '09876543210', 'tax_code': 'BNCFRC75B02F205Z',
        'address': 'Corso Vittorio Emanuele 10', 'city': 'Torino', 'postal_code': '10121', 'province': 'TO',
        'email': 'info@bianchi.com', 'phone': '011987654',
    },
]

SITES = [
    # customer, name, address, [(material text, purchased)]
    ('Mario Rossi SRL', 'Ristrutturazione Appartamento', 'Via Garibaldi 5, Milano',
     [('Piastrelle bagno', True), ('Sanitari', False), ('Pittura bianca', False)]),
    ('Mario Rossi SRL', 'Ufficio Direzionale', 'Piazza Duomo 1, Milano',
     [('Cartongesso', False), ('Faretti LED', False)]),
    ('Bianchi Costruzioni', 'Nuova Villetta', 'Strada del Pino 15, Pecetto Torinese',
     [('Cemento', True), ('Mattoni', True), ('Tegole', False)]),
]

PURCHASES = [
    # site, date, [(product code, quantity)]
    ('Ristrutturazione Appartamento', date(2023, 10, 15), [('CAV-01', 20)]),
    ('Ristrutturazione Appartamento', date(2023, 10, 18), [('TSH-001', 5)]),
]

QUOTES = [
    # site, date, notes, [(product code, quantity)]
    ('Ristrutturazione Appartamento', date(2024, 5, 10), 'Lavori di ristrutturazione impianto elettrico.',
     [('CAV-01', 15), ('HDP-002', 1)]),
    ('Nuova Villetta', date(2024, 6, 1), 'Fornitura abbigliamento da lavoro.',
     [('TSH-001', 10)]),
]


class Command(BaseCommand):
    help = "Loads demo shop info, catalog, customers, sites, purchases and quotes"

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete quotes, purchases, customers and products before loading',
        )

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("LOADING DEMO DATA"))
        self.stdout.write(self.style.SUCCESS("=" * 80))

        with transaction.atomic():
            if options['clear']:
                self._clear()

            shop = ShopInfo.get_solo()
            self.stdout.write(f"Shop: {shop.name} (IVA {shop.vat_rate}%)")

            categories = self._load_categories()
            products = self._load_products(categories)
            customers = self._load_customers()
            sites = self._load_sites(customers)
            self._load_purchases(sites, products)
            self._load_quotes(sites, products)

        self.stdout.write(self.style.SUCCESS("\n" + "=" * 80))
        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"Categories: {Category.objects.count()}")
        self.stdout.write(f"Products: {Product.objects.count()}")
        self.stdout.write(f"Customers: {Customer.objects.count()}")
        self.stdout.write(f"Construction sites: {ConstructionSite.objects.count()}")
        self.stdout.write(f"Purchases: {Purchase.objects.count()}")
        self.stdout.write(f"Quotes: {Quote.objects.count()}")

    def _clear(self):
        self.stdout.write(self.style.WARNING("Clearing existing data..."))
        # Children before parents: purchases and quotes protect customers and sites
        Quote.objects.all().delete()
        Purchase.objects.all().delete()
        Customer.objects.all().delete()
        Product.objects.all().delete()
        Category.objects.filter(is_system=False).delete()
        self.stdout.write(self.style.SUCCESS("  ✓ Data cleared"))

    def _load_categories(self):
        categories = {}
        for name, margin, vat_rate in CATEGORIES:
            category = Category.objects.filter(name__iexact=name).first()
            if category is None:
                category = Category.objects.create(name=name, profit_margin=margin, vat_rate=vat_rate)
                self.stdout.write(self.style.SUCCESS(f"  ✓ Created category: {name}"))
            else:
                self.stdout.write(self.style.WARNING(f"  ⊘ Skipped (already exists): {name}"))
            categories[name] = category
        Category.get_uncategorized()
        return categories

    def _load_products(self, categories):
        products = {}
        for category_name, code, name, quantity, purchase_price, selling_price in PRODUCTS:
            product = Product.objects.filter(code__iexact=code).first()
            if product is None:
                product = Product.objects.create(
                    category=categories[category_name],
                    code=code,
                    name=name,
                    quantity=Decimal(quantity),
                    purchase_price=Decimal(purchase_price),
                    selling_price=Decimal(selling_price),
                )
                self.stdout.write(self.style.SUCCESS(f"  ✓ Created product: {code} {name}"))
            else:
                self.stdout.write(self.style.WARNING(f"  ⊘ Skipped (already exists): {code}"))
            products[code] = product
        return products

    def _load_customers(self):
        customers = {}
        for data in CUSTOMERS:
            customer = Customer.find_duplicate(data['vat_number'], data['tax_code'])
            if customer is None:
                customer = Customer.objects.create(**data)
                self.stdout.write(self.style.SUCCESS(f"  ✓ Created customer: {customer.company_name}"))
            else:
                self.stdout.write(self.style.WARNING(f"  ⊘ Skipped (already exists): {customer.company_name}"))
            customers[data['company_name']] = customer
        return customers

    def _load_sites(self, customers):
        sites = {}
        for customer_name, name, address, materials in SITES:
            site, created = ConstructionSite.objects.get_or_create(
                customer=customers[customer_name],
                name=name,
                defaults={'address': address},
            )
            if created:
                replace_site_materials(site, [
                    {'text': text, 'quantity': Decimal('1'), 'purchased': purchased}
                    for text, purchased in materials
                ])
                self.stdout.write(self.style.SUCCESS(f"  ✓ Created site: {name} ({len(materials)} materiali)"))
            sites[name] = site
        return sites

    def _load_purchases(self, sites, products):
        for site_name, purchase_date, lines in PURCHASES:
            site = sites[site_name]
            if Purchase.objects.filter(site=site, date=purchase_date).exists():
                continue
            purchase = Purchase.objects.create(customer=site.customer, site=site, date=purchase_date)
            for code, quantity in lines:
                product = products[code]
                PurchaseItem.objects.create(
                    purchase=purchase,
                    product=product,
                    product_code=product.code,
                    product_name=product.name,
                    quantity=Decimal(quantity),
                    unit_price=product.purchase_price,
                )
            purchase.recalculate_total()
            self.stdout.write(self.style.SUCCESS(f"  ✓ Created purchase for {site_name}: €{purchase.total}"))

    def _load_quotes(self, sites, products):
        for site_name, quote_date, notes, lines in QUOTES:
            site = sites[site_name]
            if Quote.objects.filter(site=site, date=quote_date).exists():
                continue
            quote = create_quote(
                customer=site.customer,
                lines=[(products[code], quantity) for code, quantity in lines],
                site=site,
                date=quote_date,
                notes=notes,
            )
            self.stdout.write(self.style.SUCCESS(f"  ✓ Created quote {quote.quote_number}: €{quote.total}"))
