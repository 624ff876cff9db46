"""
MealRoute Middleware
====================

1. SecurityHeadersMiddleware - hardening headers on every response
2. RequestAuditMiddleware - audit trail for order, delivery and routing writes
"""

import logging
from django.conf import settings
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger('mealroute.security')


class SecurityHeadersMiddleware(MiddlewareMixin):
    """Add security headers to all responses."""

    STATIC_HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        # Executives share their position and delivery photos from the browser
        'Permissions-Policy': 'geolocation=(self), camera=(self), microphone=(), payment=()',
    }

    def process_response(self, request, response):
        for header, value in self.STATIC_HEADERS.items():
            response[header] = value

        # Admin popups are rendered in iframes
        if not request.path.startswith('/admin/'):
            response['X-Frame-Options'] = 'DENY'

        if not settings.DEBUG:
            response['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains; preload'

        if 'Server' in response:
            del response['Server']
        return response


class RequestAuditMiddleware(MiddlewareMixin):
    """
    Audit log of who changed what, for which company.

    Logged: token requests, writes under AUDITED_PREFIXES and any
    failed API call.
    """

    AUDITED_PREFIXES = (
        '/api/addresses/',
        '/api/orders/',
        '/api/delivery-items/',
        '/api/delivery-manager/',
        '/api/executives/',
        '/api/route-planner/journey/',
        '/api/route-program/',
        '/api/route-runs/',
        '/admin/',
    )
    WRITE_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')

    @staticmethod
    def _client_ip(request):
        forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
        if forwarded:
            return forwarded.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR', '?')

    @staticmethod
    def _actor(request):
        user = getattr(request, 'user', None)
        if user is None or not user.is_authenticated:
            return 'anonymous', '-'
        return user.email, user.roles or '-'

    def _is_audited(self, request, response):
        path = request.path
        if path.startswith('/api/auth/'):
            return True
        if response.status_code >= 500:
            return True
        if path.startswith('/api/') and response.status_code >= 400:
            return True
        return request.method in self.WRITE_METHODS and path.startswith(self.AUDITED_PREFIXES)

    def process_response(self, request, response):
        if not self._is_audited(request, response):
            return response

        email, roles = self._actor(request)
        entry = (
            f"{request.method} {request.path} -> {response.status_code} "
            f"user={email} roles={roles} "
            f"company={request.headers.get('X-Company-ID', '-')} ip={self._client_ip(request)}"
        )

        if response.status_code >= 500:
            logger.error(f"AUDIT [ERROR] {entry}")
        elif response.status_code >= 400:
            logger.warning(f"AUDIT [WARN] {entry}")
        else:
            logger.info(f"AUDIT [OK] {entry}")
        return response
