"""
asgi.py -- ASGI entry point for Folio.

api/main.py assembles the whole application (routers, middleware, exception
handlers); this module only exposes it under the name servers look for.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
