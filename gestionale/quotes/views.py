from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
import logging

from gestionale.core.models import ShopInfo
from gestionale.core.utils import create_audit_log
from gestionale.documents.pdf import render_quote_pdf, pdf_response, quote_filename
from gestionale.parties.models import ConstructionSite
from .filters import QuoteFilter
from .models import Quote
from .serializers import (
    MSG_QUOTE_NO_ITEMS, QuotePreviewSerializer, QuoteCreateSerializer, QuoteSerializer,
)
from .services import create_quote, price_quote

logger = logging.getLogger(__name__)


def _quote_queryset():
    return Quote.objects.select_related('customer', 'site').prefetch_related('items')


def _has_items(data):
    items = data.get('items') if isinstance(data, dict) else None
    return isinstance(items, list) and len(items) > 0


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def quote_preview(request):
    """Price a list of items without saving anything"""
    if not _has_items(request.data):
        return Response({'error': MSG_QUOTE_NO_ITEMS}, status=status.HTTP_400_BAD_REQUEST)

    serializer = QuotePreviewSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    totals = price_quote(serializer.get_lines(), include_vat=serializer.validated_data['include_vat'])
    return Response({
        'items': [
            {
                'product': item['product'].id,
                'product_code': item['product_code'],
                'product_name': item['product_name'],
                'unit_price': str(item['unit_price']),
                'vat_rate': str(item['vat_rate']),
                'quantity': item['quantity'],
                'line_total': str(item['line_total']),
            }
            for item in totals['items']
        ],
        'subtotal': str(totals['subtotal']),
        'tax': str(totals['tax']),
        'total': str(totals['total']),
        'vat_rate': str(totals['vat_rate']),
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def quote_list_create(request):
    """
    GET: list quotes, newest first; filters: customer, site
    POST: save a quote; totals and number are assigned by the server
    """
    if request.method == 'GET':
        queryset = _quote_queryset().order_by('-date', '-id')
        quote_filter = QuoteFilter(request.query_params, queryset=queryset)
        if not quote_filter.is_valid():
            return Response(quote_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(QuoteSerializer(quote_filter.qs, many=True).data)

    if not _has_items(request.data):
        return Response({'error': MSG_QUOTE_NO_ITEMS}, status=status.HTTP_400_BAD_REQUEST)

    serializer = QuoteCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    quote = create_quote(
        customer=data['customer'],
        lines=serializer.get_lines(),
        site=data.get('site'),
        date=data.get('date'),
        notes=data.get('notes', ''),
        include_vat=data['include_vat'],
        user=request.user,
    )
    create_audit_log(
        request=request,
        action='quote_create',
        model_name='Quote',
        object_id=quote.id,
        object_name=quote.customer.company_name,
        object_reference=quote.quote_number,
        changes={'total': str(quote.total), 'include_vat': quote.include_vat},
    )
    return Response(QuoteSerializer(_quote_queryset().get(pk=quote.pk)).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def quote_detail(request, pk):
    """Retrieve a quote with its items"""
    quote = _quote_queryset().filter(pk=pk).first()
    if quote is None:
        return Response({'error': 'Preventivo non trovato'}, status=status.HTTP_404_NOT_FOUND)
    return Response(QuoteSerializer(quote).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def site_quotes(request, pk):
    """Quotes issued for a construction site, newest first"""
    if not ConstructionSite.objects.filter(pk=pk).exists():
        return Response({'error': 'Cantiere non trovato'}, status=status.HTTP_404_NOT_FOUND)
    queryset = _quote_queryset().filter(site_id=pk).order_by('-date', '-id')
    return Response(QuoteSerializer(queryset, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def quote_pdf(request, pk):
    """Download the quote PDF; ?inline=1 serves it for in-browser preview"""
    quote = _quote_queryset().filter(pk=pk).first()
    if quote is None:
        return Response({'error': 'Preventivo non trovato'}, status=status.HTTP_404_NOT_FOUND)

    content = render_quote_pdf(quote, ShopInfo.get_solo())
    inline = request.query_params.get('inline', '') in ('1', 'true')
    return pdf_response(content, quote_filename(quote), inline=inline)
