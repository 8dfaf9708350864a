from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Prefetch
import logging

from gestionale.core import gemini_service
from gestionale.core.gemini_service import AssistantError
from gestionale.core.models import ShopInfo
from gestionale.core.utils import create_audit_log, assistant_error_response
from gestionale.catalog.pricing import quantize_money
from gestionale.documents.pdf import render_checklist_pdf, pdf_response, checklist_filename
from gestionale.purchasing.models import Purchase
from gestionale.purchasing.serializers import PurchaseSerializer
from gestionale.quotes.models import Quote
from gestionale.quotes.serializers import QuoteSerializer
from .filters import CustomerFilter
from .models import Customer, ConstructionSite, SiteMaterial
from .serializers import (
    CustomerSerializer, ConstructionSiteSerializer, SiteMaterialsSerializer, replace_site_materials,
)

logger = logging.getLogger(__name__)

MSG_CUSTOMER_EXISTS = 'Cliente con questa P.IVA o Codice Fiscale già esistente.'
MSG_CUSTOMER_NOT_FOUND = 'Cliente non trovato'
MSG_SITE_NOT_FOUND = 'Cantiere non trovato'
MSG_AUTOFILL_NO_NAME = 'Inserisci prima la Ragione Sociale.'
MSG_AUTOFILL_NOT_FOUND = 'Nessun dato trovato per questa azienda.'


def _site_queryset():
    return ConstructionSite.objects.select_related('customer').prefetch_related(
        Prefetch('materials', queryset=SiteMaterial.objects.select_related('product'))
    )


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def customer_list_create(request):
    """
    GET: list customers by company name, filtered by ?search=<name, P.IVA or CF>
    POST: create a customer; VAT number and tax code must not belong to another customer
    """
    if request.method == 'GET':
        queryset = Customer.objects.prefetch_related('sites').order_by('company_name')
        customer_filter = CustomerFilter(request.query_params, queryset=queryset)
        if not customer_filter.is_valid():
            return Response(customer_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(CustomerSerializer(customer_filter.qs, many=True).data)

    serializer = CustomerSerializer(data=request.data)
    if serializer.is_valid():
        data = serializer.validated_data
        if Customer.find_duplicate(data.get('vat_number', ''), data.get('tax_code', '')):
            return Response({'error': MSG_CUSTOMER_EXISTS}, status=status.HTTP_400_BAD_REQUEST)
        customer = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='Customer',
            object_id=customer.id,
            object_name=customer.company_name,
            object_reference=customer.vat_number or customer.tax_code or None,
        )
        return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = Customer.objects.filter(pk=pk).first()
    if customer is None:
        return Response({'error': MSG_CUSTOMER_NOT_FOUND}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        return Response(CustomerSerializer(customer).data)

    if request.method == 'DELETE':
        if customer.quotes.exists() or customer.purchases.exists():
            return Response(
                {'error': 'Impossibile eliminare il cliente: esistono preventivi o acquisti collegati.'},
                status=status.HTTP_400_BAD_REQUEST,
            )
        create_audit_log(
            request=request,
            action='delete',
            model_name='Customer',
            object_id=customer.id,
            object_name=customer.company_name,
        )
        customer.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = CustomerSerializer(customer, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        data = serializer.validated_data
        vat_number = data.get('vat_number', customer.vat_number)
        tax_code = data.get('tax_code', customer.tax_code)
        if Customer.find_duplicate(vat_number, tax_code, exclude_pk=customer.pk):
            return Response({'error': MSG_CUSTOMER_EXISTS}, status=status.HTTP_400_BAD_REQUEST)
        customer = serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='Customer',
            object_id=customer.id,
            object_name=customer.company_name,
            changes={key: str(value) for key, value in data.items()},
        )
        return Response(CustomerSerializer(customer).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_overview(request, pk):
    """
    Customer with all its sites; each site lists its quotes and purchases
    (newest first) with their running totals.
    """
    customer = Customer.objects.filter(pk=pk).first()
    if customer is None:
        return Response({'error': MSG_CUSTOMER_NOT_FOUND}, status=status.HTTP_404_NOT_FOUND)

    sites = _site_queryset().filter(customer=customer).prefetch_related(
        Prefetch('quotes', queryset=Quote.objects.prefetch_related('items').order_by('-date', '-id')),
        Prefetch('purchases', queryset=Purchase.objects.prefetch_related('items').order_by('-date', '-id')),
    ).order_by('name')

    site_data = []
    for site in sites:
        quotes = list(site.quotes.all())
        purchases = list(site.purchases.all())
        data = ConstructionSiteSerializer(site).data
        data['quotes'] = QuoteSerializer(quotes, many=True).data
        data['purchases'] = PurchaseSerializer(purchases, many=True).data
        data['quote_total'] = str(quantize_money(sum(q.total for q in quotes)))
        data['purchase_total'] = str(quantize_money(sum(p.total for p in purchases)))
        site_data.append(data)

    return Response({
        'customer': CustomerSerializer(customer).data,
        'sites': site_data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def customer_autofill(request):
    """Look up the P.IVA and codice fiscale of a company by name; nothing is saved"""
    data = request.data if isinstance(request.data, dict) else {}
    company_name = str(data.get('company_name', '')).strip()
    if not company_name:
        return Response({'error': MSG_AUTOFILL_NO_NAME}, status=status.HTTP_400_BAD_REQUEST)

    try:
        identifiers = gemini_service.lookup_company_identifiers(company_name)
    except AssistantError as e:
        logger.error(f"Company lookup failed for '{company_name}': {str(e)}")
        return assistant_error_response(e, 'Errore durante la ricerca dei dati aziendali.')

    if not identifiers['vat_number'] and not identifiers['tax_code']:
        return Response({**identifiers, 'message': MSG_AUTOFILL_NOT_FOUND})
    return Response(identifiers)


# Construction site views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def customer_sites(request, pk):
    """List the sites of a customer or add one, with optional initial materials"""
    customer = Customer.objects.filter(pk=pk).first()
    if customer is None:
        return Response({'error': MSG_CUSTOMER_NOT_FOUND}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        sites = _site_queryset().filter(customer=customer).order_by('name')
        return Response(ConstructionSiteSerializer(sites, many=True).data)

    serializer = ConstructionSiteSerializer(data=request.data)
    if serializer.is_valid():
        site = serializer.save(customer=customer)
        create_audit_log(
            request=request,
            action='create',
            model_name='ConstructionSite',
            object_id=site.id,
            object_name=site.name,
            object_reference=customer.company_name,
        )
        return Response(ConstructionSiteSerializer(_site_queryset().get(pk=site.pk)).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def site_detail(request, pk):
    """Retrieve, update or delete a construction site"""
    site = _site_queryset().filter(pk=pk).first()
    if site is None:
        return Response({'error': MSG_SITE_NOT_FOUND}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        return Response(ConstructionSiteSerializer(site).data)

    if request.method == 'DELETE':
        if site.purchases.exists():
            return Response(
                {'error': 'Impossibile eliminare il cantiere: esistono acquisti collegati.'},
                status=status.HTTP_400_BAD_REQUEST,
            )
        create_audit_log(
            request=request,
            action='delete',
            model_name='ConstructionSite',
            object_id=site.id,
            object_name=site.name,
            object_reference=site.customer.company_name,
        )
        site.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = ConstructionSiteSerializer(site, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        site = serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='ConstructionSite',
            object_id=site.id,
            object_name=site.name,
            changes={key: str(value) for key, value in serializer.validated_data.items() if key != 'materials'},
        )
        return Response(ConstructionSiteSerializer(_site_queryset().get(pk=site.pk)).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def site_materials(request, pk):
    """Replace the whole material checklist of a site"""
    site = ConstructionSite.objects.filter(pk=pk).first()
    if site is None:
        return Response({'error': MSG_SITE_NOT_FOUND}, status=status.HTTP_404_NOT_FOUND)

    serializer = SiteMaterialsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    materials = serializer.validated_data['materials']
    replace_site_materials(site, materials)
    create_audit_log(
        request=request,
        action='materials_update',
        model_name='ConstructionSite',
        object_id=site.id,
        object_name=site.name,
        changes={
            'materials': len(materials),
            'purchased': sum(1 for item in materials if item.get('purchased')),
        },
    )
    return Response(ConstructionSiteSerializer(_site_queryset().get(pk=site.pk)).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def site_checklist_pdf(request, pk):
    """Download the material checklist of a site as PDF"""
    site = _site_queryset().filter(pk=pk).first()
    if site is None:
        return Response({'error': MSG_SITE_NOT_FOUND}, status=status.HTTP_404_NOT_FOUND)

    content = render_checklist_pdf(site, ShopInfo.get_solo())
    inline = request.query_params.get('inline', '') in ('1', 'true')
    return pdf_response(content, checklist_filename(site), inline=inline)
