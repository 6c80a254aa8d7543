"""Retailer price checking for tracked items"""

from .checker import PriceChecker
from .parsing import PriceListing, extract_listing, parse_price
from .retailers import RETAILER_CONFIGS, RetailerConfig, get_retailer_config
from .service import PriceRefreshService

__all__ = [
    "PriceChecker",
    "PriceListing",
    "PriceRefreshService",
    "RETAILER_CONFIGS",
    "RetailerConfig",
    "extract_listing",
    "get_retailer_config",
    "parse_price",
]
