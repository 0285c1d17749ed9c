from storefront.middleware.request_log import RequestLoggingMiddleware
from storefront.middleware.security import SecurityHeadersMiddleware

__all__ = ["RequestLoggingMiddleware", "SecurityHeadersMiddleware"]
