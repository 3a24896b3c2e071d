"""
asgi.py -- ASGI entry point for the HRIS backend.

api/main.py builds the app; this module is the stable import path servers use,
so deployment config does not depend on the package layout.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
