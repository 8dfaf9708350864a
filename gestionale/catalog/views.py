from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count
import logging

from gestionale.core.gemini_service import AssistantError
from gestionale.core.model_cache import get_cached_category_list
from gestionale.core.utils import create_audit_log, assistant_error_response
from gestionale.purchasing.models import DocumentImport
from gestionale.purchasing.signatures import create_document_signature
from .filters import ProductFilter
from .importers import DocumentImportError, extract_document, stage_products
from .models import Category, Product
from .serializers import CategorySerializer, ProductSerializer, StagedProductSerializer
from .services import upsert_product, delete_category

logger = logging.getLogger(__name__)

MSG_CATEGORY_EXISTS = 'Categoria già esistente'
MSG_PRODUCT_NOT_FOUND = 'Prodotto non trovato'
MSG_DUPLICATE_DOCUMENT = 'Attenzione: questo documento sembra essere già stato caricato.'


def _is_true(value):
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def category_list_create(request):
    """List all categories or create a new category"""
    if request.method == 'GET':
        return Response(get_cached_category_list())

    serializer = CategorySerializer(data=request.data)
    if serializer.is_valid():
        if Category.name_taken(serializer.validated_data['name']):
            return Response({'error': MSG_CATEGORY_EXISTS}, status=status.HTTP_400_BAD_REQUEST)
        category = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='Category',
            object_id=category.id,
            object_name=category.name,
            changes={'profit_margin': str(category.profit_margin), 'vat_rate': str(category.vat_rate)},
        )
        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = Category.objects.annotate(product_count=Count('products')).filter(pk=pk).first()
    if category is None:
        return Response({'error': 'Categoria non trovata'}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        return Response(CategorySerializer(category).data)

    if request.method == 'DELETE':
        if category.is_system:
            return Response({'error': 'La categoria "Da Assegnare" non può essere eliminata.'}, status=status.HTTP_400_BAD_REQUEST)
        name = category.name
        moved = delete_category(category)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Category',
            object_id=pk,
            object_name=name,
            changes={'products_moved_to_uncategorized': moved},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        new_name = serializer.validated_data.get('name', category.name)
        if category.is_system and new_name != category.name:
            return Response({'error': 'La categoria "Da Assegnare" non può essere rinominata.'}, status=status.HTTP_400_BAD_REQUEST)
        if Category.name_taken(new_name, exclude_pk=category.pk):
            return Response({'error': MSG_CATEGORY_EXISTS}, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='Category',
            object_id=category.id,
            object_name=category.name,
            changes={key: str(value) for key, value in serializer.validated_data.items()},
        )
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_list_create(request):
    """
    GET: list products, filtered by ?category=<id> and ?search=<text>
    POST: add a product; an existing code is merged (stock added, prices replaced)
    """
    if request.method == 'GET':
        queryset = Product.objects.select_related('category').order_by('name')
        product_filter = ProductFilter(request.query_params, queryset=queryset)
        if not product_filter.is_valid():
            return Response(product_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = ProductSerializer(product_filter.qs, many=True)
        return Response(serializer.data)

    serializer = ProductSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    product, created = upsert_product(
        code=data['code'],
        name=data['name'],
        quantity=data.get('quantity', 0),
        purchase_price=data.get('purchase_price', 0),
        selling_price=data.get('selling_price'),
        category=data.get('category'),
    )
    create_audit_log(
        request=request,
        action='create' if created else 'stock_add',
        model_name='Product',
        object_id=product.id,
        object_name=product.name,
        object_reference=product.code,
        changes={'quantity_added': str(data.get('quantity', 0)), 'stock': str(product.quantity)},
    )
    return Response(
        ProductSerializer(product).data,
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = Product.objects.select_related('category').filter(pk=pk).first()
    if product is None:
        return Response({'error': MSG_PRODUCT_NOT_FOUND}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        return Response(ProductSerializer(product).data)

    if request.method == 'DELETE':
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=product.id,
            object_name=product.name,
            object_reference=product.code,
        )
        product.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    old_prices = (product.purchase_price, product.selling_price)
    serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        product = serializer.save()
        new_prices = (product.purchase_price, product.selling_price)
        create_audit_log(
            request=request,
            action='price_change' if new_prices != old_prices else 'update',
            model_name='Product',
            object_id=product.id,
            object_name=product.name,
            object_reference=product.code,
            changes={key: str(value) for key, value in serializer.validated_data.items()},
        )
        return Response(ProductSerializer(product).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Import from supplier documents
@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def product_import(request):
    """
    Stage products from an uploaded supplier document (FatturaPA XML, PDF or photo).

    Nothing is saved: the client reviews the staged products and posts them to
    product_import_commit. Send force=true to stage a document already imported.
    """
    uploaded_file = request.FILES.get('file')
    if uploaded_file is None:
        return Response({'error': 'Nessun file caricato.'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        extracted = extract_document(uploaded_file)
    except DocumentImportError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except AssistantError as e:
        logger.error(f"Document extraction failed for {uploaded_file.name}: {str(e)}")
        return assistant_error_response(e, "Errore durante l'analisi del documento.")

    # Signature is computed on the codes as they appear in the document, before codes are generated
    signature = create_document_signature(extracted['supplier'], extracted['document_date'], extracted['products'])
    if DocumentImport.exists(signature) and not _is_true(request.data.get('force', '')):
        return Response({'error': MSG_DUPLICATE_DOCUMENT, 'signature': signature}, status=status.HTTP_409_CONFLICT)

    staged, warnings = stage_products(extracted)

    logger.info(f"Staged {len(staged)} products from {uploaded_file.name} (supplier: {extracted['supplier']})")
    return Response({
        'supplier': extracted['supplier'],
        'document_date': extracted['document_date'],
        'signature': signature,
        'products': StagedProductSerializer(staged, many=True).data,
        'warnings': warnings,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([JSONParser])
def product_import_commit(request):
    """
    Save reviewed products from an import.

    Each product is validated and upserted on its own; failures are reported
    per index. The document signature is recorded once anything was saved.
    """
    rows = request.data.get('products') if isinstance(request.data, dict) else None
    if not isinstance(rows, list) or not rows:
        return Response({'error': 'Nessun prodotto da salvare.'}, status=status.HTTP_400_BAD_REQUEST)

    saved = []
    failed = []
    for index, row in enumerate(rows):
        row_serializer = StagedProductSerializer(data=row)
        if not row_serializer.is_valid():
            failed.append({'index': index, 'errors': row_serializer.errors})
            continue
        data = row_serializer.validated_data
        product, _created = upsert_product(
            code=data['code'],
            name=data['name'],
            quantity=data['quantity'],
            purchase_price=data['purchase_price'],
            selling_price=data.get('selling_price'),
            category=data['category'],
        )
        saved.append(product)

    signature = (request.data.get('signature') or '').strip()
    signature_recorded = False
    if saved and signature:
        DocumentImport.record(
            signature,
            supplier=request.data.get('supplier', ''),
            document_date=request.data.get('document_date', ''),
            user=request.user,
        )
        signature_recorded = True

    if saved:
        create_audit_log(
            request=request,
            action='product_import',
            model_name='Product',
            object_id=saved[0].id,
            object_name=f"{len(saved)} prodotti importati",
            object_reference=signature[:255] or None,
            changes={'saved': [p.code for p in saved], 'failed': len(failed)},
        )

    logger.info(f"Import commit: {len(saved)} saved, {len(failed)} failed")
    return Response(
        {
            'saved': ProductSerializer(saved, many=True).data,
            'failed': failed,
            'signature_recorded': signature_recorded,
        },
        status=status.HTTP_201_CREATED if saved else status.HTTP_400_BAD_REQUEST,
    )
