import httpx
import pytest
from fastapi.testclient import TestClient

from purrview.api.auth import create_access_token, get_api_settings
from purrview.api.main import app, get_db, get_price_checker
from purrview.notifications import NotificationService
from purrview.pricing import PriceChecker
from purrview.storage import Database
from purrview.utils.config import Settings

SECRET_KEY = "test-secret"
SERVICE_KEY = "test-service-key"

PRODUCT_PAGE = """
<html>
  <head>
    <meta property="og:price:amount" content="89.99">
  </head>
  <body>
    <span data-test="product-price">$89.99</span>
    <span class="ProductPrice-original">$120.00</span>
    <link itemprop="availability" href="https://schema.org/InStock">
  </body>
</html>
"""


@pytest.fixture
def db():
    return Database("sqlite:///:memory:")


@pytest.fixture
def notifications(db):
    return NotificationService(db)


@pytest.fixture
def retailer_pages():
    """URL -> (status, html) served by the mock retailer transport."""
    return {}


@pytest.fixture
def transport(retailer_pages):
    def handler(request: httpx.Request) -> httpx.Response:
        status, body = retailer_pages.get(str(request.url), (404, "Not Found"))
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status, text=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def price_checker(transport):
    return PriceChecker(timeout=10.0, transport=transport)


@pytest.fixture
def settings():
    return Settings(secret_key=SECRET_KEY, service_role_key=SERVICE_KEY)


@pytest.fixture
def client(db, price_checker, settings):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_price_checker] = lambda: price_checker
    app.dependency_overrides[get_api_settings] = lambda: settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, SECRET_KEY)}"}


def add_wishlist_item(db: Database, user_id: str = "user-1", **fields):
    values = {
        "brand": "Nike",
        "model": "Air Max 90",
        "category": "sneakers",
        "status": "wishlisted",
        "product_url": "https://www.footlocker.com/product/air-max-90/12345.html",
        "retail_price": 120.0,
        "auto_price_tracking_enabled": True,
    }
    values.update(fields)
    return db.add_item(user_id, **values)
