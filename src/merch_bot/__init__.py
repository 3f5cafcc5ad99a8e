"""
Merch Bot
Automated product discovery, cart and checkout for a merch storefront
"""

__version__ = '1.0.0'
