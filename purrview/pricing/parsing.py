"""Price extraction from retailer product pages."""

import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag
from pydantic import BaseModel

from .retailers import GENERIC_PRICE_SELECTORS, GENERIC_STOCK_SELECTORS, RetailerConfig

MIN_VALID_PRICE = 1.0
MAX_VALID_PRICE = 50000.0

OUT_OF_STOCK_SELECTORS = ".sold-out, .out-of-stock, [data-out-of-stock]"
OUT_OF_STOCK_MARKERS = ("unavailable", "outofstock", "soldout", "discontinued")


class PriceListing(BaseModel):
    """Normalized price data read from one product page."""

    price: float
    retail_price: Optional[float] = None
    in_stock: Optional[bool] = None
    store_name: str


def parse_price(price_text: Optional[str]) -> Optional[float]:
    """Parse a displayed price ("$1,299.00", "89,99 €") to a float.

    Returns None for empty, unparseable or zero prices.
    """
    if not price_text:
        return None

    cleaned = re.sub(r"[^0-9.,]", "", price_text)
    # A trailing ",dd" is a decimal comma
    if re.search(r",\d{2}$", cleaned):
        cleaned = cleaned[: len(cleaned) - 3] + "." + cleaned[-2:]
    cleaned = cleaned.replace(",", "")

    match = re.match(r"\d+(\.\d+)?", cleaned)
    if not match:
        return None

    price = float(match.group(0))
    return price or None


def validate_price(price: float, retail_price: Optional[float] = None) -> bool:
    """Reject obviously wrong prices: sub-dollar, absurdly high, or over 2x retail."""
    if price < MIN_VALID_PRICE or price > MAX_VALID_PRICE:
        return False
    if retail_price and price > retail_price * 2:
        return False
    return True


def _element_value(element: Tag) -> Optional[str]:
    """Text a selector points at: meta/microdata content, link href, or visible text."""
    if element.get("content"):
        return element["content"]
    if element.name == "meta":
        return None
    if element.name == "link":
        return element.get("href")
    return element.get_text(strip=True) or None


def _first_price(
    soup: BeautifulSoup,
    selectors: Iterable[str],
    retail_price: Optional[float] = None,
    validate: bool = True,
) -> Optional[float]:
    for selector in selectors:
        element = soup.select_one(selector)
        if element is None:
            continue

        price = parse_price(_element_value(element))
        if price is None:
            continue
        if not validate or validate_price(price, retail_price):
            return price
    return None


def _stock_status(soup: BeautifulSoup, selectors: Iterable[str]) -> Optional[bool]:
    for selector in selectors:
        element = soup.select_one(selector)
        if element is None:
            continue

        value = re.sub(r"[\s_-]", "", (_element_value(element) or "").lower())
        if any(marker in value for marker in OUT_OF_STOCK_MARKERS):
            return False
        if "instock" in value or "available" in value:
            return True

    if soup.select_one(OUT_OF_STOCK_SELECTORS) is not None:
        return False
    return None


def extract_listing(
    html: str,
    config: Optional[RetailerConfig],
    store_name: str,
    retail_price: Optional[float] = None,
) -> Optional[PriceListing]:
    """Extract price, original price and stock status from a product page.

    Retailer-specific selectors are tried first, then generic ones. The
    known retail price, when given, bounds what counts as a valid price.

    Returns:
        PriceListing, or None when no valid price is on the page
    """
    soup = BeautifulSoup(html, "html.parser")

    price = None
    original_price = None
    stock_selectors = GENERIC_STOCK_SELECTORS

    if config:
        price = _first_price(soup, config.price_selectors, retail_price)
        original_price = _first_price(soup, config.original_price_selectors, validate=False)
        stock_selectors = config.stock_selectors + GENERIC_STOCK_SELECTORS

    if price is None:
        price = _first_price(soup, GENERIC_PRICE_SELECTORS, retail_price)

    if price is None:
        return None

    return PriceListing(
        price=price,
        retail_price=original_price or retail_price,
        in_stock=_stock_status(soup, stock_selectors),
        store_name=store_name,
    )
