"""Retailer catalog: which stores we know how to read prices from."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse


@dataclass(frozen=True)
class RetailerConfig:
    """Extraction rules for one retailer.

    support_level reflects how often a plain HTTP fetch yields a price:
    high (85-95%), medium (40-70%), low (5-20%, heavy anti-bot protection).
    """

    domain: str
    name: str
    price_selectors: tuple[str, ...]
    original_price_selectors: tuple[str, ...] = ()
    stock_selectors: tuple[str, ...] = ()
    support_level: str = "high"


OG_PRICE = 'meta[property="og:price:amount"]'

GENERIC_PRICE_SELECTORS = (
    '[itemprop="price"]',
    'meta[property="product:price:amount"]',
    OG_PRICE,
    ".price",
    '[class*="price"]',
)

GENERIC_STOCK_SELECTORS = (
    '[itemprop="availability"]',
    'meta[property="product:availability"]',
    'meta[property="og:availability"]',
)

RETAILER_CONFIGS: tuple[RetailerConfig, ...] = (
    # High success rate
    RetailerConfig(
        domain="footlocker.com",
        name="Foot Locker",
        price_selectors=('[data-test="product-price"]', ".ProductPrice", '[itemprop="price"]', OG_PRICE),
        original_price_selectors=(".ProductPrice-original", '[data-test="original-price"]'),
    ),
    RetailerConfig(
        domain="shoepalace.com",
        name="Shoe Palace",
        price_selectors=("[data-product-price]", ".product-price", ".price", OG_PRICE),
        original_price_selectors=(".price-original", ".compare-at-price", ".price-was"),
    ),
    RetailerConfig(
        domain="hibbett.com",
        name="Hibbett",
        price_selectors=(".product-price", "[data-price]", '[itemprop="price"]', OG_PRICE),
        original_price_selectors=(".price-was", ".price-original"),
    ),
    RetailerConfig(
        domain="myshopify.com",
        name="Shopify Store",
        price_selectors=("[data-product-price]", ".price", OG_PRICE),
        original_price_selectors=(".price--compare", ".compare-at-price"),
    ),
    RetailerConfig(
        domain="finishline.com",
        name="Finish Line",
        price_selectors=('[data-test="product-price"]', ".ProductPrice-price", '[itemprop="price"]'),
        original_price_selectors=(".ProductPrice-original",),
    ),
    RetailerConfig(
        domain="champssports.com",
        name="Champs Sports",
        price_selectors=('[data-test="product-price"]', ".ProductPrice", '[class*="price"]'),
    ),
    RetailerConfig(
        domain="stance.com",
        name="Stance",
        price_selectors=("[data-product-price]", ".product-price", ".price", OG_PRICE),
    ),
    RetailerConfig(
        domain="newbalance.com",
        name="New Balance",
        price_selectors=("[data-product-price]", ".product-price", '[class*="Price"]', OG_PRICE),
    ),
    RetailerConfig(
        domain="converse.com",
        name="Converse",
        price_selectors=(".product-price", "[data-price]", '[class*="price"]', OG_PRICE),
    ),
    # Medium success rate
    RetailerConfig(
        domain="oldnavy.gap.com",
        name="Old Navy",
        price_selectors=('[data-test="product-price"]', ".product-price", OG_PRICE),
        original_price_selectors=(".price-original", '[data-test="original-price"]'),
        support_level="medium",
    ),
    RetailerConfig(
        domain="bananarepublic.gap.com",
        name="Banana Republic",
        price_selectors=('[data-test="product-price"]', ".product-price", OG_PRICE),
        support_level="medium",
    ),
    RetailerConfig(
        domain="gap.com",
        name="Gap",
        price_selectors=('[data-test="product-price"]', ".product-price", OG_PRICE),
        original_price_selectors=(".price-original", '[data-test="original-price"]'),
        support_level="medium",
    ),
    RetailerConfig(
        domain="levi.com",
        name="Levi's",
        price_selectors=(".product-price", "[data-price]", '[itemprop="price"]', OG_PRICE),
        support_level="medium",
    ),
    RetailerConfig(
        domain="uniqlo.com",
        name="UNIQLO",
        price_selectors=('[data-testid="product-price"]', ".product-price", '[class*="Price"]', OG_PRICE),
        support_level="medium",
    ),
    # Low success rate: will try, but callers should warn users
    RetailerConfig(
        domain="nike.com",
        name="Nike",
        price_selectors=('[data-test="product-price"]', ".product-price", OG_PRICE),
        support_level="low",
    ),
    RetailerConfig(
        domain="adidas.com",
        name="Adidas",
        price_selectors=('[data-test="product-price"]', ".product-price", OG_PRICE),
        support_level="low",
    ),
)


def hostname_for(url: str) -> Optional[str]:
    """Lower-cased hostname without a leading www., or None for unusable URLs."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    host = parsed.hostname.lower()
    return host[4:] if host.startswith("www.") else host


def get_retailer_config(url: str) -> Optional[RetailerConfig]:
    """Find the retailer config whose domain matches the URL's host.

    Sub-domains match their parent (e.g. store.myshopify.com). More specific
    domains are listed before their parents, so the first match wins.
    """
    host = hostname_for(url)
    if not host:
        return None

    for config in RETAILER_CONFIGS:
        if host == config.domain or host.endswith("." + config.domain):
            return config
    return None


def store_name_for(url: str, config: Optional[RetailerConfig] = None) -> str:
    """Display name for the store behind a URL."""
    if config:
        return config.name
    host = hostname_for(url)
    return host.split(".")[0] if host else "Unknown"
