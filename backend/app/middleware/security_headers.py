"""
JBin Backend — Security Headers Middleware
============================================

What:  Browser hardening headers on every response.
How:   The Content-Security-Policy is assembled once from settings (extra
       script/style/worker sources) and attached with the fixed headers below.
Who:   Applied to every response, API and error responses included.

Headers:
    Content-Security-Policy     default-src 'self' plus reCAPTCHA origins
    Strict-Transport-Security   one year, subdomains, preload
    X-Content-Type-Options      nosniff
    X-Frame-Options             SAMEORIGIN
    Referrer-Policy             no-referrer
"""

from typing import Dict, Iterable, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.config import Settings

RECAPTCHA_SCRIPT_ORIGINS = ["https://www.google.com", "https://www.gstatic.com"]


def build_content_security_policy(
    extra_script_src: Iterable[str] = (),
    extra_style_src: Iterable[str] = (),
    extra_worker_src: Iterable[str] = (),
) -> str:
    """
    Render the CSP header value.

    Extra script sources are also allowed as connect sources, since analytics
    scripts report back to their own origin.
    """
    extra_script_src = list(extra_script_src)
    directives: Dict[str, List[str]] = {
        "default-src": ["'self'"],
        "script-src": ["'self'", *RECAPTCHA_SCRIPT_ORIGINS, *extra_script_src],
        "frame-src": ["https://www.google.com"],
        "connect-src": ["'self'", *extra_script_src],
        "style-src": ["'self'", "'unsafe-inline'", *extra_style_src],
        "worker-src": ["'self'", "blob:", *extra_worker_src],
        "base-uri": ["'self'"],
        "object-src": ["'none'"],
        "frame-ancestors": ["'self'"],
    }
    return "; ".join(f"{name} {' '.join(sources)}" for name, sources in directives.items())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Sets the hardening headers unless a route already chose its own."""

    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.headers = {
            "Content-Security-Policy": build_content_security_policy(
                settings.csp_extra_script_src_list,
                settings.csp_extra_style_src_list,
                settings.csp_extra_worker_src_list,
            ),
            "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "SAMEORIGIN",
            "Referrer-Policy": "no-referrer",
        }

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
