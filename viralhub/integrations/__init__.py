"""
External Integrations

Per-client integration settings, validated at the boundary.
"""

from .config import (
    ClientContext,
    ShopifySettings,
    GoogleAdsSettings,
    ClientSettings,
    parse_client_settings,
)

__all__ = [
    "ClientContext",
    "ShopifySettings",
    "GoogleAdsSettings",
    "ClientSettings",
    "parse_client_settings",
]
