"""
Response envelope

Every JSON response leaves the API as
``{"success": ..., "data": ..., "error": ..., "meta": {"timestamp": ...}}``.
Views return plain serializer data; the renderer wraps it.
"""
from typing import Any, Optional

from django.utils import timezone
from rest_framework import status
from rest_framework.renderers import JSONRenderer


def envelope_meta() -> dict:
    return {'timestamp': timezone.now().isoformat()}


def error_payload(code: str, message: str, details: Optional[Any] = None) -> dict:
    error = {'code': code, 'message': message}
    if details is not None:
        error['details'] = details
    return {'success': False, 'error': error, 'meta': envelope_meta()}


def success_payload(data: Any) -> dict:
    return {'success': True, 'data': data, 'meta': envelope_meta()}


class EnvelopeJSONRenderer(JSONRenderer):
    """
    JSON renderer that wraps successful payloads in the success envelope.

    Payloads that already carry a ``success`` key (error responses built by
    the exception handler) pass through untouched.
    """

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = (renderer_context or {}).get('response')
        if response is not None and response.status_code != status.HTTP_204_NO_CONTENT:
            already_wrapped = isinstance(data, dict) and 'success' in data
            if not already_wrapped and response.status_code < 400:
                data = success_payload(data)
        return super().render(data, accepted_media_type, renderer_context)
