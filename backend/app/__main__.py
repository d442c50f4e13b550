"""
JBin Backend — Server Entry Point
===================================

Usage:
    python -m app            (from the backend/ directory)
    jbin                     (console script installed by pip)

Binds HOST:PORT from Settings and serves `app.main:app` with uvicorn.
"""

import uvicorn

from app.config import settings


def main() -> None:
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        # Honor X-Forwarded-Proto/For from the reverse proxy when trusted
        proxy_headers=settings.trust_proxy,
        forwarded_allow_ips="*" if settings.trust_proxy else None,
    )


if __name__ == "__main__":
    main()
