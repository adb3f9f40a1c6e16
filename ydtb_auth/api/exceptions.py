"""
统一错误响应: {"error": message, "code": code}
"""

import logging

from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response

from ..constants import ErrorCode, HttpStatus
from ..exceptions import YdtbAuthError, RateLimitError


logger = logging.getLogger(__name__)

DRF_ERROR_CODES = {
    HttpStatus.UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    HttpStatus.FORBIDDEN: ErrorCode.PERMISSION_DENIED,
    HttpStatus.NOT_FOUND: 'NOT_FOUND',
    HttpStatus.TOO_MANY_REQUESTS: ErrorCode.RATE_LIMIT_EXCEEDED,
}


def error_response(message, code, status):
    return Response({'error': message, 'code': code}, status=status)


def exception_handler(exc, context):
    """DRF 异常处理器"""
    if isinstance(exc, YdtbAuthError):
        response = error_response(exc.message, exc.error_code, exc.status_code)
        if isinstance(exc, RateLimitError) and exc.reset_time is not None:
            response.data['reset_time'] = exc.reset_time.isoformat()
        return response

    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()

    if isinstance(exc, drf_exceptions.APIException):
        detail = exc.detail
        if isinstance(detail, dict):
            detail = next(iter(detail.values()), '')
        if isinstance(detail, list):
            detail = detail[0] if detail else ''
        code = DRF_ERROR_CODES.get(exc.status_code, ErrorCode.VALIDATION_ERROR)
        response = error_response(str(detail), code, exc.status_code)
        if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
            authenticate_header = context['view'].get_authenticate_header(context['request'])
            if authenticate_header:
                response['WWW-Authenticate'] = authenticate_header
        return response

    view = context.get('view')
    logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
    return error_response('Internal server error', ErrorCode.INTERNAL_ERROR, HttpStatus.INTERNAL_SERVER_ERROR)
