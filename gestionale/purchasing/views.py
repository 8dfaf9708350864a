from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
import logging

from gestionale.core.utils import create_audit_log
from gestionale.parties.models import ConstructionSite
from .filters import PurchaseFilter
from .models import Purchase, DocumentImport
from .serializers import PurchaseSerializer, DocumentImportSerializer

logger = logging.getLogger(__name__)


def _purchase_queryset():
    return Purchase.objects.select_related('customer', 'site', 'created_by').prefetch_related('items')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_list_create(request):
    """
    GET: list purchases, newest first; filters: customer, site, date_from, date_to
    POST: record a purchase for a customer's site
    """
    if request.method == 'GET':
        queryset = _purchase_queryset().order_by('-date', '-id')
        purchase_filter = PurchaseFilter(request.query_params, queryset=queryset)
        if not purchase_filter.is_valid():
            return Response(purchase_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = PurchaseSerializer(purchase_filter.qs, many=True)
        return Response(serializer.data)

    serializer = PurchaseSerializer(data=request.data)
    if serializer.is_valid():
        purchase = serializer.save(created_by=request.user)
        create_audit_log(
            request=request,
            action='purchase_create',
            model_name='Purchase',
            object_id=purchase.id,
            object_name=purchase.site.name,
            object_reference=purchase.customer.company_name,
            changes={'total': str(purchase.total), 'items': purchase.items.count()},
        )
        logger.info(f"Purchase {purchase.id} recorded for site {purchase.site_id}: total {purchase.total}")
        return Response(PurchaseSerializer(_purchase_queryset().get(pk=purchase.pk)).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def purchase_detail(request, pk):
    """Retrieve a purchase with its items"""
    purchase = _purchase_queryset().filter(pk=pk).first()
    if purchase is None:
        return Response({'error': 'Acquisto non trovato'}, status=status.HTTP_404_NOT_FOUND)
    return Response(PurchaseSerializer(purchase).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def site_purchases(request, pk):
    """Purchases of a construction site, newest first"""
    if not ConstructionSite.objects.filter(pk=pk).exists():
        return Response({'error': 'Cantiere non trovato'}, status=status.HTTP_404_NOT_FOUND)
    queryset = _purchase_queryset().filter(site_id=pk).order_by('-date', '-id')
    return Response(PurchaseSerializer(queryset, many=True).data)


# Uploaded document ledger
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def document_check(request):
    """Tell whether a document signature was already recorded"""
    signature = request.query_params.get('signature', '').strip()
    if not signature:
        return Response({'error': 'Parametro signature obbligatorio.'}, status=status.HTTP_400_BAD_REQUEST)
    return Response({'exists': DocumentImport.exists(signature)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def document_record(request):
    """Record a document signature; recording the same signature twice is a no-op"""
    serializer = DocumentImportSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    entry, created = DocumentImport.record(
        data['signature'],
        supplier=data.get('supplier', ''),
        document_date=data.get('document_date', ''),
        user=request.user,
    )
    if created:
        create_audit_log(
            request=request,
            action='document_record',
            model_name='DocumentImport',
            object_id=entry.id,
            object_name=entry.supplier or entry.signature[:255],
            object_reference=entry.document_date or None,
        )
    return Response(
        DocumentImportSerializer(entry).data,
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )
