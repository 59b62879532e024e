"""
asgi.py -- ASGI entry point for the Storefront API.

This is the only module that calls get_settings(). Everything below it
receives configuration through create_app().

Run with:  uvicorn asgi:app --reload
"""

from api.main import configure_logging, create_app
from core.config import get_settings

configure_logging()
app = create_app(get_settings())
