"""
Common utility functions for API responses
"""
from rest_framework.response import Response
from rest_framework import status


def success_response(data=None, message="Success", status_code=status.HTTP_200_OK):
    """
    Standard success response format
    """
    response_data = {
        "code": status_code,
        "msg": message,
        "data": data
    }
    return Response(response_data, status=status_code)


def error_response(message="Error", errors=None, status_code=status.HTTP_400_BAD_REQUEST, reason=None):
    """
    Standard error response format
    """
    response_data = {
        "code": status_code,
        "msg": message
    }
    if reason:
        response_data["reason"] = reason
    if errors:
        response_data["errors"] = errors
    return Response(response_data, status=status_code)


def checkout_error_response(exc):
    """Render a CheckoutError as a structured rejection"""
    return error_response(exc.message, exc.errors, exc.status_code, reason=exc.reason)


def paginate_queryset(queryset, page, limit, max_limit=100):
    """Slice a queryset and return (items, pagination dict)"""
    try:
        page = max(int(page), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = min(max(int(limit), 1), max_limit)
    except (TypeError, ValueError):
        limit = 20

    total = queryset.count()
    start = (page - 1) * limit
    items = queryset[start:start + limit]

    return items, {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": (total + limit - 1) // limit,
    }


def get_client_ip(request):
    """Get client IP address"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR', '')
    return ip
