"""
Bulky: bulk product enhancement for Shopify catalogs.
"""

__version__ = "1.0.0"
