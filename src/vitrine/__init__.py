"""Vitrine — product catalog backend with realtime updates.

HTTP API for the storefront catalog, image upload to the media host,
and a WebSocket channel that tells connected browsers when products change.
"""

__version__ = "0.1.0"
