"""
Security headers middleware.

The portal serves JSON and generated PDFs only, so the policy is locked
down: no framing, no inline content, no referrer leakage.

Usage:
    from app.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""

API_CSP = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"


def init_security_headers(app):
    """Register after_request handler that injects security headers."""

    @app.after_request
    def _add_security_headers(response):
        response.headers.setdefault("Content-Security-Policy", API_CSP)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")

        if app.config.get("ENV_NAME") == "production":
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )

        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Cache-Control", "no-store")
        response.headers.pop("Server", None)
        return response
