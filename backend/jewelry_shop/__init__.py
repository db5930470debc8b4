"""
Jewelry Shop Backend.

REST backend for a jewelry storefront: catalog, orders,
QR payments, reviews and customer accounts.
"""

__version__ = "1.0.0"
