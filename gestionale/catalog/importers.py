"""
Import of products from supplier documents.

Two sources are supported:
- FatturaPA electronic invoices (XML), parsed locally
- PDFs and photos of invoices / delivery notes, read by Gemini

Extracted lines are staged (not saved): they get an AI-suggested category and
a generated code when the document has none. Saving happens later through the import commit endpoint.
"""
import logging
import time
import xml.etree.ElementTree as ET

from django.utils import timezone

from gestionale.core import gemini_service
from gestionale.core.gemini_service import AssistantError
from .models import Category
from .pricing import to_decimal, quantize_money, selling_price_from_margin

logger = logging.getLogger(__name__)

XML_MIME_TYPES = ('text/xml', 'application/xml')

MSG_XML_PARSE_ERROR = 'Errore nel parsing del file XML.'
MSG_XML_MISSING_DATA = 'XML non valido o mancante di dati essenziali (fornitore, data, prodotti).'
MSG_NO_CATEGORIES = 'Nessuna categoria disponibile. I prodotti sono "Da Assegnare".'
MSG_CATEGORIZATION_FAILED = 'Categorizzazione fallita. Assegna le categorie manualmente.'
MSG_NO_PRODUCTS = 'Nessun prodotto valido trovato nel file.'


class DocumentImportError(Exception):
    """The uploaded document cannot be turned into product lines"""


def _local_name(tag):
    return tag.rsplit('}', 1)[-1]


def _find(element, *path):
    """Find a descendant by local tag names, ignoring XML namespaces"""
    current = [element]
    for name in path:
        found = None
        for candidate in current:
            for child in candidate.iter():
                if child is not candidate and _local_name(child.tag) == name:
                    found = child
                    break
            if found is not None:
                break
        if found is None:
            return None
        current = [found]
    return current[0]


def _text(element):
    if element is None or element.text is None:
        return ''
    return element.text.strip()


def parse_invoice_xml(content):
    """
    Parse a FatturaPA invoice.

    Returns {'supplier', 'document_date', 'products': [{name, code, quantity, purchase_price}]}.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        logger.warning(f"Invalid XML upload: {str(e)}")
        raise DocumentImportError(MSG_XML_PARSE_ERROR) from e

    supplier_node = _find(root, 'CedentePrestatore')
    supplier = _text(_find(supplier_node, 'Denominazione')) if supplier_node is not None else ''
    if supplier_node is not None and not supplier:
        supplier = ' '.join(part for part in (_text(_find(supplier_node, 'Nome')), _text(_find(supplier_node, 'Cognome'))) if part)

    date_node = _find(root, 'DatiGeneraliDocumento', 'Data')
    lines = [el for el in root.iter() if _local_name(el.tag) == 'DettaglioLinee']

    if supplier_node is None or date_node is None or not lines:
        raise DocumentImportError(MSG_XML_MISSING_DATA)

    products = []
    for line in lines:
        quantity_text = _text(_find(line, 'Quantita'))
        price_text = _text(_find(line, 'PrezzoUnitario'))
        products.append({
            'name': _text(_find(line, 'Descrizione')),
            'code': _text(_find(line, 'CodiceArticolo', 'CodiceValore')) or None,
            'quantity': to_decimal(quantity_text, default=to_decimal('1')),
            'purchase_price': to_decimal(price_text),
        })

    return {
        'supplier': supplier or 'Sconosciuto',
        'document_date': _text(date_node) or timezone.localdate().isoformat(),
        'products': products,
    }


def normalize_extraction(raw):
    """Map the Gemini extraction dict to the same shape as parse_invoice_xml"""
    products = []
    for row in raw.get('prodotti') or []:
        if not isinstance(row, dict):
            continue
        products.append({
            'name': str(row.get('prodotto') or '').strip(),
            'code': str(row.get('codiceProdotto') or '').strip() or None,
            'quantity': to_decimal(row.get('quantita'), default=to_decimal('1')),
            'purchase_price': to_decimal(row.get('prezzoAcquisto')),
        })
    return {
        'supplier': str(raw.get('fornitore') or '').strip() or 'Sconosciuto',
        'document_date': str(raw.get('dataDocumento') or '').strip() or timezone.localdate().isoformat(),
        'products': products,
    }


def is_xml_upload(uploaded_file):
    name = (uploaded_file.name or '').lower()
    return name.endswith('.xml') or (uploaded_file.content_type or '') in XML_MIME_TYPES


def extract_document(uploaded_file):
    """Read an uploaded file into supplier, date and product lines"""
    content = uploaded_file.read()
    if is_xml_upload(uploaded_file):
        return parse_invoice_xml(content)

    mime_type = uploaded_file.content_type or 'application/octet-stream'
    # AssistantError propagates: the caller maps it to 502/503
    raw = gemini_service.extract_document(content, mime_type)
    return normalize_extraction(raw)


def assign_categories(products):
    """
    Pick a category for every staged product.

    Returns (list of Category aligned with products, warnings).
    Any Gemini failure falls back to 'Da Assegnare' for every product.
    """
    uncategorized = Category.get_uncategorized()
    categories = list(Category.objects.filter(is_system=False))
    if not products:
        return [], []
    if not categories:
        return [uncategorized] * len(products), [MSG_NO_CATEGORIES]

    warnings = []
    try:
        assignments = gemini_service.categorize_products(
            [p['name'] for p in products],
            [c.name for c in categories],
        )
    except AssistantError as e:
        logger.warning(f"Automatic categorization failed, falling back to '{uncategorized.name}': {str(e)}")
        assignments = {}
        warnings.append(MSG_CATEGORIZATION_FAILED)

    by_name = {c.name.lower(): c for c in categories}
    assigned = [by_name.get((assignments.get(p['name']) or '').strip().lower(), uncategorized) for p in products]
    return assigned, warnings


def stage_products(extracted):
    """
    Turn extracted lines into reviewable products.

    Returns (staged products, warnings).
    """
    products = extracted['products']
    categories, warnings = assign_categories(products)

    millis = int(time.time() * 1000)
    staged = []
    for index, (product, category) in enumerate(zip(products, categories), start=1):
        purchase_price = quantize_money(product['purchase_price'])
        selling_price = quantize_money(0)
        if category.profit_margin > 0:
            selling_price = selling_price_from_margin(purchase_price, category.profit_margin)
        staged.append({
            'name': product['name'],
            'code': product['code'] or f"N/D-{millis}-{index}",
            'quantity': product['quantity'],
            'purchase_price': purchase_price,
            'selling_price': selling_price,
            'category': category,
        })

    if not staged:
        warnings.append(MSG_NO_PRODUCTS)
    return staged, warnings
