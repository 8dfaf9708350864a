"""
Gemini (Google generative AI) service.

Used for three things:
- extracting supplier, date and product lines from scanned invoices / delivery notes
- assigning imported products to existing categories
- looking up the VAT number and tax code of an Italian company by name
"""
import json
import logging
import os
import re

from django.conf import settings
from google import genai
from google.genai import types

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'gemini-2.5-flash'

UNASSIGNED_CATEGORY_LABEL = 'Da Assegnare'

EXTRACTION_PROMPT = (
    'Estrai il nome del fornitore, la data del documento (in formato YYYY-MM-DD), '
    'e i dettagli dei prodotti. Per ogni prodotto, fornisci nome, quantità, prezzo di acquisto, '
    'e codice se disponibile. Restituisci un singolo oggetto JSON con chiavi "fornitore", '
    '"dataDocumento", e "prodotti" (un array di oggetti).'
)


class AssistantError(Exception):
    """Raised when a Gemini call fails or returns unusable data"""


class AssistantNotConfigured(AssistantError):
    """Raised when no Gemini API key is configured"""


def get_api_key():
    return getattr(settings, 'GEMINI_API_KEY', '') or os.getenv('GEMINI_API_KEY', '')


def get_model_name():
    return getattr(settings, 'GEMINI_MODEL', '') or os.getenv('GEMINI_MODEL', DEFAULT_MODEL)


def get_client():
    api_key = get_api_key()
    if not api_key:
        raise AssistantNotConfigured('GEMINI_API_KEY is not configured')
    return genai.Client(api_key=api_key)


def parse_json_text(text):
    """
    Parse JSON out of a model answer.

    Answers produced without a response schema (e.g. with the search tool enabled)
    may be wrapped in markdown fences or surrounded by prose.
    """
    cleaned = text.strip()
    fence = re.match(r'^```(?:json)?\s*(.*?)\s*```$', cleaned, re.DOTALL)
    if fence:
        cleaned = fence.group(1)
    try:
        return json.loads(cleaned)
    except ValueError:
        pass

    match = re.search(r'(\{.*\}|\[.*\])', cleaned, re.DOTALL)
    if match:
        try:
            return json.loads(match.group(1))
        except ValueError:
            pass
    raise AssistantError(f'Invalid JSON in model response: {text[:200]}')


def _generate(contents, config=None):
    client = get_client()
    model = get_model_name()
    try:
        response = client.models.generate_content(model=model, contents=contents, config=config)
    except Exception as e:
        logger.error(f"Gemini request to {model} failed: {str(e)}")
        raise AssistantError(str(e)) from e

    text = (getattr(response, 'text', None) or '').strip()
    if not text:
        raise AssistantError('Empty response from model')
    return text


def categorize_products(product_names, category_names):
    """
    Ask the model to pick a category for each product name.

    Returns a dict {product name: category name}. Names the model does not
    answer for are simply missing from the dict.
    """
    if not product_names:
        return {}

    prompt = (
        f"Date le seguenti categorie: {json.dumps(list(category_names), ensure_ascii=False)}. "
        f"Per ciascuno dei seguenti prodotti, assegna la categoria più appropriata: "
        f"{json.dumps(list(product_names), ensure_ascii=False)}. "
        f"Se nessuna è adatta, assegna '{UNASSIGNED_CATEGORY_LABEL}'. "
        f"Rispondi con un array di oggetti JSON, con chiavi \"prodotto\" e \"categoria\"."
    )
    config = types.GenerateContentConfig(
        response_mime_type='application/json',
        response_schema=types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    'prodotto': types.Schema(type=types.Type.STRING),
                    'categoria': types.Schema(type=types.Type.STRING),
                },
                required=['prodotto', 'categoria'],
            ),
        ),
    )
    result = parse_json_text(_generate(prompt, config))
    if not isinstance(result, list):
        raise AssistantError('Categorization response is not a list')

    assignments = {}
    for row in result:
        if isinstance(row, dict) and row.get('prodotto'):
            assignments[row['prodotto']] = row.get('categoria') or UNASSIGNED_CATEGORY_LABEL
    logger.info(f"Categorized {len(assignments)} of {len(product_names)} products")
    return assignments


def lookup_company_identifiers(company_name):
    """
    Search the web for the partita IVA and codice fiscale of an Italian company.

    Returns {'vat_number': str, 'tax_code': str}; unknown values are empty strings.
    """
    prompt = (
        f"Trova la Partita IVA e il Codice Fiscale per l'azienda italiana \"{company_name}\". "
        f"Se non trovi uno dei due valori, lascialo come stringa vuota. "
        f"Rispondi solo con un oggetto JSON con chiavi \"piva\" e \"codiceFiscale\"."
    )
    # JSON mode cannot be combined with the search tool, so the answer is parsed leniently
    config = types.GenerateContentConfig(
        tools=[types.Tool(google_search=types.GoogleSearch())],
    )
    data = parse_json_text(_generate(prompt, config))
    if not isinstance(data, dict):
        raise AssistantError('Company lookup response is not an object')
    return {
        'vat_number': str(data.get('piva') or '').strip(),
        'tax_code': str(data.get('codiceFiscale') or '').strip(),
    }


def extract_document(data, mime_type):
    """
    Extract supplier, document date and product lines from a PDF or image.

    Returns the raw model dict with keys fornitore, dataDocumento, prodotti.
    """
    config = types.GenerateContentConfig(
        response_mime_type='application/json',
        response_schema=types.Schema(
            type=types.Type.OBJECT,
            properties={
                'fornitore': types.Schema(type=types.Type.STRING),
                'dataDocumento': types.Schema(type=types.Type.STRING),
                'prodotti': types.Schema(
                    type=types.Type.ARRAY,
                    items=types.Schema(
                        type=types.Type.OBJECT,
                        properties={
                            'codiceProdotto': types.Schema(type=types.Type.STRING),
                            'prodotto': types.Schema(type=types.Type.STRING),
                            'quantita': types.Schema(type=types.Type.NUMBER),
                            'prezzoAcquisto': types.Schema(type=types.Type.NUMBER),
                        },
                        required=['prodotto', 'quantita', 'prezzoAcquisto'],
                    ),
                ),
            },
            required=['fornitore', 'dataDocumento', 'prodotti'],
        ),
    )
    contents = [
        types.Part.from_bytes(data=data, mime_type=mime_type),
        EXTRACTION_PROMPT,
    ]
    result = parse_json_text(_generate(contents, config))
    if not isinstance(result, dict):
        raise AssistantError('Extraction response is not an object')
    logger.info(f"Extracted {len(result.get('prodotti') or [])} lines from {mime_type} document")
    return result
