"""Utility functions for audit logging and shared error responses"""
import logging

from rest_framework import status
from rest_framework.response import Response

from .gemini_service import AssistantNotConfigured
from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, quote_create, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., product name, quote number)
        object_reference: Reference identifier (e.g., product code, document signature)
    """
    if not action or not model_name or object_id in (None, ''):
        logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
        return None

    audit_user = user
    if audit_user is None and request is not None and hasattr(request, 'user'):
        audit_user = request.user

    try:
        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # Audit logging must not break the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


MSG_ASSISTANT_NOT_CONFIGURED = 'Errore: Chiave API non valida o mancante nelle impostazioni.'


def assistant_error_response(exc, message):
    """Map a Gemini failure to an API response: 503 when unconfigured, 502 otherwise"""
    if isinstance(exc, AssistantNotConfigured):
        return Response({'error': MSG_ASSISTANT_NOT_CONFIGURED}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response({'error': message}, status=status.HTTP_502_BAD_GATEWAY)
