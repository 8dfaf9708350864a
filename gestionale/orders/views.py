from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
import logging

from gestionale.core.models import ShopInfo
from gestionale.documents.pdf import render_order_pdf, pdf_response, order_filename
from .serializers import MSG_ORDER_NO_ITEMS, OrderRequestSerializer
from .services import build_order

logger = logging.getLogger(__name__)


def _validated_order(request):
    """Return (order, None) or (None, error response)"""
    items = request.data.get('items') if isinstance(request.data, dict) else None
    if not isinstance(items, list) or not items:
        return None, Response({'error': MSG_ORDER_NO_ITEMS}, status=status.HTTP_400_BAD_REQUEST)

    serializer = OrderRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return None, Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    order = build_order(
        customer=data['customer'],
        lines=[(item['product'], item['quantity']) for item in data['items']],
        order_date=data['date'],
        site=data.get('site'),
    )
    return order, None


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_preview(request):
    """Priced lines and total of a material order, as JSON"""
    order, error = _validated_order(request)
    if error is not None:
        return error

    return Response({
        'customer': order['customer'].id,
        'site': order['site'].id if order['site'] else None,
        'date': order['date'].isoformat(),
        'items': [
            {**item, 'unit_price': str(item['unit_price']), 'line_total': str(item['line_total'])}
            for item in order['items']
        ],
        'total': str(order['total']),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_pdf(request):
    """Render a material order as PDF; nothing is stored"""
    order, error = _validated_order(request)
    if error is not None:
        return error

    content = render_order_pdf(order, ShopInfo.get_solo())
    logger.info(f"Generated material order for {order['customer'].company_name}: {len(order['items'])} lines, total {order['total']}")
    return pdf_response(content, order_filename(order['date']))
