"""
Error handling middleware for API requests
"""

import logging
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class ErrorHandlingMiddleware(MiddlewareMixin):
    """
    Secure error handling middleware that prevents information leakage
    """

    def process_exception(self, request, exception):
        """Handle exceptions securely"""
        # Log the actual exception for debugging
        logger.error(f"Exception in {request.path}: {str(exception)}", exc_info=True)

        # Return generic error response without exposing internal details
        if request.path.startswith('/api/'):
            error_response = {
                'code': 500,
                'msg': 'Internal server error, please try again later',
                'data': None
            }
            return JsonResponse(error_response, status=500)

        return None  # Let Django handle non-API errors normally
