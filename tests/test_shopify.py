"""Unit tests for commerce/shopify.py -- product image lookup.

All HTTP goes through the module-level requests session, patched here so
no test touches the network.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from commerce.shopify import ShopifyClient, numeric_product_id


def _response(payload, status=200):
    resp = MagicMock()
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return resp


@pytest.fixture
def client():
    return ShopifyClient("https://test-shop.myshopify.com/", "shpat_token", api_version="2024-01")


@pytest.mark.parametrize(
    "product_id,expected",
    [
        ("123", "123"),
        ("gid://shopify/Product/8765", "8765"),
        (" gid://shopify/Product/42 ", "42"),
        ("not-a-product", None),
        ("", None),
    ],
)
def test_numeric_product_id(product_id, expected):
    assert numeric_product_id(product_id) == expected


def test_store_url_is_normalized(client):
    assert client.store == "test-shop.myshopify.com"
    assert client.base_url == "https://test-shop.myshopify.com/admin/api/2024-01"
    assert client.configured


def test_unconfigured_client_never_calls_out():
    with patch("commerce.shopify._session") as session:
        assert ShopifyClient("", "").fetch_product_image("123") is None
        session.get.assert_not_called()


def test_first_image_wins(client):
    payload = {"product": {"images": [{"src": "https://cdn/a.jpg"}, {"src": "https://cdn/b.jpg"}]}}
    with patch("commerce.shopify._session") as session:
        session.get.return_value = _response(payload)
        assert client.fetch_product_image("gid://shopify/Product/99") == "https://cdn/a.jpg"
        url = session.get.call_args.args[0]
        assert url == "https://test-shop.myshopify.com/admin/api/2024-01/products/99.json"
        assert session.get.call_args.kwargs["headers"]["X-Shopify-Access-Token"] == "shpat_token"


def test_falls_back_to_featured_image(client):
    with patch("commerce.shopify._session") as session:
        session.get.return_value = _response({"product": {"images": [], "image": {"src": "https://cdn/main.jpg"}}})
        assert client.fetch_product_image("99") == "https://cdn/main.jpg"


@pytest.mark.parametrize(
    "response",
    [
        _response({}, status=404),
        _response({"product": {"images": []}}),
        _response(["unexpected"]),
    ],
)
def test_lookup_failures_return_none(client, response):
    with patch("commerce.shopify._session") as session:
        session.get.return_value = response
        assert client.fetch_product_image("99") is None


def test_network_error_returns_none(client):
    with patch("commerce.shopify._session") as session:
        session.get.side_effect = requests.ConnectionError("down")
        assert client.fetch_product_image("99") is None
