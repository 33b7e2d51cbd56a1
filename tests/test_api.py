import json

import pytest
from httpx import AsyncClient

from api.main import load_sources

ISBN = "9781234567890"


@pytest.mark.asyncio
async def test_check_availability_returns_batch_report(client: AsyncClient, fake_fetcher):
    """
    Test the batch endpoint end to end against the fake fetcher.

    Asserts:
        - Response status code is 200 (OK)
        - One result per submitted place, in submission order
        - Totals are consistent with the results
        - Null fields are present in the JSON rather than omitted
    """
    fake_fetcher.pages["Amazon Canada"] = "<p>Add to cart</p>"
    body = {
        "isbn": ISBN,
        "places": [
            {"name": "Amazon Canada", "vicinity": "Toronto"},
            {"name": "Joe's Coffee", "vicinity": "Somewhere"},
        ],
    }

    r = await client.post("/api/check-availability", json=body)

    assert r.status_code == 200
    data = r.json()
    assert data["isbn"] == ISBN
    assert data["total_checked"] == 2
    assert data["available_count"] == 1
    assert [res["status"] for res in data["results"]] == ["available", "unknown"]
    assert data["results"][0]["price"] is None
    assert "call_number" in data["results"][1]
    assert data["timestamp"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"isbn": ISBN},
        {"places": [{"name": "Amazon Canada"}]},
        {"isbn": ISBN, "places": []},
    ],
)
async def test_check_availability_requires_places_and_isbn(client: AsyncClient, body):
    r = await client.post("/api/check-availability", json=body)
    assert r.status_code == 400
    assert r.json()["detail"] == "Places and ISBN are required"


@pytest.mark.asyncio
async def test_list_adapters(client: AsyncClient):
    r = await client.get("/api/adapters")
    assert r.status_code == 200
    data = r.json()
    assert data["count"] == 4
    assert data["adapters"][0] == "Toronto Public Library"


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    r = await client.get("/api/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "OK"
    assert data["adapters_loaded"] == 4


def test_load_sources_validates_records(tmp_path):
    path = tmp_path / "sources.json"
    path.write_text(
        json.dumps(
            [
                {
                    "name": "Amazon Canada",
                    "base_url": "https://www.amazon.ca",
                    "search_endpoint": "/s?k={isbn}",
                }
            ]
        ),
        encoding="utf-8",
    )

    sources = load_sources(str(path))

    assert [s.name for s in sources] == ["Amazon Canada"]
    assert sources[0].rate_limit == 1.0


def test_load_sources_without_path():
    assert load_sources(None) == []
