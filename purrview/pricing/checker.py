"""Fetch a retailer product page and read its current price."""

import random
from typing import Optional

import httpx
from loguru import logger

from ..errors import TransientFetchError, UnsupportedSourceError
from .parsing import PriceListing, extract_listing
from .retailers import get_retailer_config, store_name_for


class PriceChecker:
    """Single-shot price lookup for one product URL.

    No retries: a failed fetch is reported to the caller, which decides
    whether to try again.
    """

    USER_AGENTS = [
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    ]

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize price checker.

        Args:
            timeout: Upper bound in seconds for the whole retailer fetch
            transport: Optional httpx transport (used to stub retailers in tests)
        """
        self.timeout = timeout
        self.transport = transport

    def get_http_client(self) -> httpx.AsyncClient:
        """HTTP client with browser-like headers and a bounded timeout"""
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._get_headers(),
            follow_redirects=True,
            transport=self.transport,
        )

    def _get_headers(self) -> dict:
        return {
            "User-Agent": random.choice(self.USER_AGENTS),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Cache-Control": "no-cache",
            "Referer": "https://www.google.com/",
            "DNT": "1",
        }

    async def check(self, url: str, retail_price: Optional[float] = None) -> PriceListing:
        """Fetch the page behind url and extract its price.

        Raises:
            UnsupportedSourceError: unknown retailer, or no price found on the page
            TransientFetchError: timeout, connection failure or non-2xx response
        """
        config = get_retailer_config(url)
        store_name = store_name_for(url, config)

        if config is None:
            logger.info(f"Unsupported retailer for price check: {url}")
            raise UnsupportedSourceError(
                f"{store_name} isn't a supported retailer for price checking yet.",
                category="unsupported_retailer",
                store_name=store_name,
            )

        try:
            async with self.get_http_client() as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            logger.warning(f"Price check timed out for {url}: {e}")
            raise TransientFetchError(
                f"Request timed out - {store_name} is taking too long to respond",
                category="timeout",
                store_name=store_name,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"Price check fetch failed for {url}: {e}")
            raise TransientFetchError(
                f"Failed to check price: {e}",
                category="network_error",
                store_name=store_name,
            ) from e

        if not response.is_success:
            status = response.status_code
            blocked = status in (403, 429)
            message = f"HTTP {status}"
            if blocked:
                message += " - Site blocked request (anti-bot protection)"
            logger.warning(f"Price check for {url} returned {message}")
            raise TransientFetchError(
                message,
                category="bot_detection" if blocked else "network_error",
                store_name=store_name,
                status=status,
            )

        listing = extract_listing(response.text, config, store_name, retail_price)
        if listing is None:
            if config.support_level == "low":
                raise UnsupportedSourceError(
                    f"{store_name} uses advanced anti-bot protection. Free price checking has "
                    "limited success for this retailer. Try visiting the site directly.",
                    category="unsupported_retailer",
                    store_name=store_name,
                    support_level=config.support_level,
                )
            raise UnsupportedSourceError(
                "Could not find price on page. The site layout may have changed.",
                category="parse_error",
                store_name=store_name,
                support_level=config.support_level,
            )

        logger.debug(f"Found price ${listing.price} at {store_name}")
        return listing

    @staticmethod
    def support_level_for(url: str) -> Optional[str]:
        config = get_retailer_config(url)
        return config.support_level if config else None
