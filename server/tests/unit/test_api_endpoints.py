"""Unit tests for the RPC API endpoints."""

from datetime import date
from uuid import uuid4

import pytest


async def create_package(client, **overrides):
    data = {
        "title": "Golden Triangle Explorer",
        "slug": "golden-triangle-explorer",
        "duration_nights": 9,
        "pricing_module": "open_jaw_seasonal",
        "flight_source": "serp",
    }
    data.update(overrides)
    response = await client.post("/v1/package/create", json=data)
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_create_and_get_package(test_client, sample_package_data):
    """Test creating a package via the API."""
    response = await test_client.post("/v1/package/create", json=sample_package_data)
    assert response.status_code == 200
    package = response.json()
    assert package["slug"] == sample_package_data["slug"]
    assert package["currency"] == "GBP"
    assert package["pricing_module"] == "open_jaw_seasonal"

    response = await test_client.post("/v1/package/get", json={"package_id": package["id"]})
    assert response.status_code == 200
    assert response.json()["id"] == package["id"]


@pytest.mark.asyncio
async def test_create_package_duplicate_slug(test_client, sample_package_data):
    await test_client.post("/v1/package/create", json=sample_package_data)
    response = await test_client.post("/v1/package/create", json=sample_package_data)
    assert response.status_code == 409
    assert response.json()["title"] == "Resource Conflict"


@pytest.mark.asyncio
async def test_create_package_validation_error(test_client):
    """Test creating a package with an invalid slug."""
    response = await test_client.post("/v1/package/create", json={"title": "X", "slug": "Not A Slug"})
    assert response.status_code == 422
    data = response.json()
    assert data["title"] == "Request Validation Failed"
    assert any(violation["path"].endswith("slug") for violation in data["violations"])


@pytest.mark.asyncio
async def test_get_nonexistent_package(test_client):
    """Test getting a non-existent package."""
    response = await test_client.post("/v1/package/get", json={"package_id": str(uuid4())})
    assert response.status_code == 404
    data = response.json()
    assert data["title"] == "Resource Not Found"
    assert data["resource_type"] == "package"


@pytest.mark.asyncio
async def test_malformed_id_is_not_found(test_client):
    response = await test_client.post("/v1/season/list", json={"package_id": "abc"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_season_lifecycle(test_client):
    """Test adding, finding, editing and deleting a season."""
    package = await create_package(test_client)
    response = await test_client.post("/v1/season/add", json={
        "package_id": package["id"],
        "label": "Summer 2025",
        "start_date": "2025-06-01",
        "end_date": "2025-08-31",
        "land_cost_per_person": "500.00",
    })
    assert response.status_code == 200
    season = response.json()
    assert season["land_cost_per_person"] == 500.0

    response = await test_client.post(
        "/v1/season/find", json={"package_id": package["id"], "travel_date": "2025-07-10"}
    )
    assert response.json()["season"]["id"] == season["id"]

    response = await test_client.post(
        "/v1/season/find", json={"package_id": package["id"], "travel_date": "2025-09-10"}
    )
    assert response.json()["season"] is None

    response = await test_client.post("/v1/season/edit", json={"season_id": season["id"], "label": "High Summer"})
    assert response.status_code == 200
    assert response.json()["label"] == "High Summer"

    response = await test_client.post("/v1/season/delete", json={"season_id": season["id"]})
    assert response.json() == {"deleted": True, "season_id": season["id"]}

    response = await test_client.post("/v1/season/list", json={"package_id": package["id"]})
    assert response.json()["items"] == []


@pytest.mark.asyncio
async def test_overlapping_season_is_bad_request(test_client):
    package = await create_package(test_client)
    body = {
        "package_id": package["id"],
        "label": "Summer 2025",
        "start_date": "2025-06-01",
        "end_date": "2025-08-31",
        "land_cost_per_person": "500.00",
    }
    await test_client.post("/v1/season/add", json=body)

    response = await test_client.post("/v1/season/add", json={**body, "label": "Overlap", "start_date": "2025-08-01"})
    assert response.status_code == 400
    assert "overlapping_season_id" in response.json()["errors"]


@pytest.mark.asyncio
async def test_ledger_upsert_list_delete(test_client):
    """Test manual ledger writes through the API."""
    package = await create_package(test_client, pricing_module="manual")
    body = {
        "package_id": package["id"],
        "departure_airport": "lgw",
        "departure_date": "2025-07-10",
        "price": 879.5,
    }

    response = await test_client.post("/v1/ledger/upsert", json=body)
    assert response.status_code == 200
    data = response.json()
    assert data["created"] is True
    assert data["entry"]["price"] == 880
    assert data["entry"]["departure_airport_name"] == "London Gatwick"

    response = await test_client.post("/v1/ledger/upsert", json={**body, "price": 900})
    assert response.json()["created"] is False

    response = await test_client.post("/v1/ledger/list", json={"package_id": package["id"]})
    items = response.json()["items"]
    assert [(item["departure_airport"], item["price"]) for item in items] == [("LGW", 900)]

    response = await test_client.post("/v1/ledger/delete", json={"entry_id": items[0]["id"]})
    assert response.json() == {"deleted": True, "entry_id": items[0]["id"]}

    response = await test_client.post("/v1/ledger/delete", json={"entry_id": items[0]["id"]})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_ledger_negative_price_is_bad_request(test_client):
    package = await create_package(test_client)
    response = await test_client.post("/v1/ledger/upsert", json={
        "package_id": package["id"],
        "departure_airport": "LGW",
        "departure_date": "2025-07-10",
        "price": -10,
    })
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_ledger_bulk_upsert_and_clear(test_client):
    package = await create_package(test_client)
    response = await test_client.post("/v1/ledger/bulk-upsert", json={
        "package_id": package["id"],
        "entries": [
            {"departure_airport": "LGW", "departure_date": "2025-07-10", "price": 880},
            {"departure_airport": "XXX", "departure_date": "2025-07-10", "price": 880},
            {"departure_airport": "MAN", "departure_date": "2025-07-10", "price": 900},
        ],
    })
    assert response.status_code == 200
    data = response.json()
    assert (data["created"], data["updated"]) == (2, 0)
    assert data["errors"][0]["item"] == "XXX 2025-07-10"

    response = await test_client.post("/v1/ledger/clear", json={"package_id": package["id"]})
    assert response.json() == {"removed": 2}


@pytest.mark.asyncio
async def test_csv_export_and_import(test_client):
    """Test a CSV round trip through the API, attributed to the acting operator."""
    package = await create_package(test_client)
    csv_text = (
        "departure_airport_code,departure_date,price\n"
        "MAN,2025-07-11,910\n"
        "LGW,2025-07-10,880\n"
        "LGW,2025-07-99,880\n"
    )

    response = await test_client.post(
        "/v1/ledger/import-csv",
        json={"package_id": package["id"], "csv_text": csv_text},
        headers={"X-Actor": "ops@example.com"},
    )
    assert response.status_code == 200
    data = response.json()
    assert (data["created"], data["updated"]) == (2, 0)
    assert [error["row"] for error in data["errors"]] == [3]

    response = await test_client.post("/v1/ledger/export-csv", json={"package_id": package["id"]})
    assert response.status_code == 200
    data = response.json()
    assert data["filename"] == "golden-triangle-explorer-pricing.csv"
    assert data["rows"] == 2
    assert data["csv_text"].splitlines()[1:] == ["LGW,2025-07-10,880", "MAN,2025-07-11,910"]

    response = await test_client.post("/v1/run/list", json={"package_id": package["id"], "kind": "csv_import"})
    runs = response.json()["items"]
    assert len(runs) == 1
    assert runs[0]["actor"] == "ops@example.com"


@pytest.mark.asyncio
async def test_csv_import_bad_header(test_client):
    package = await create_package(test_client)
    response = await test_client.post(
        "/v1/ledger/import-csv", json={"package_id": package["id"], "csv_text": "a,b,c\n1,2,3\n"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_fetch_seasonal(test_client, fares):
    """Test the worked pricing example through the API."""
    package = await create_package(test_client)
    await test_client.post("/v1/season/add", json={
        "package_id": package["id"],
        "label": "Summer 2025",
        "start_date": "2025-06-01",
        "end_date": "2025-08-31",
        "land_cost_per_person": "500.00",
    })
    fares[("LGW", date(2025, 7, 10))] = 300

    response = await test_client.post("/v1/pricing/fetch-seasonal", json={
        "package_id": package["id"],
        "origin_airports": ["LGW"],
        "destination_airports": ["DEL"],
        "dates": ["2025-07-10"],
        "markup_percent": 10,
    })
    assert response.status_code == 200
    data = response.json()
    assert data["entries_created"] == 1

    response = await test_client.post("/v1/ledger/list", json={"package_id": package["id"]})
    assert [item["price"] for item in response.json()["items"]] == [880]


@pytest.mark.asyncio
async def test_fetch_seasonal_upstream_failure_is_bad_gateway(test_client, fake_provider):
    from package_pricing.core.exceptions import UpstreamFetchError

    package = await create_package(test_client)
    await test_client.post("/v1/season/add", json={
        "package_id": package["id"],
        "label": "Summer 2025",
        "start_date": "2025-06-01",
        "end_date": "2025-08-31",
        "land_cost_per_person": "500.00",
    })
    fake_provider.error = UpstreamFetchError("serp", detail="SerpApi key is not configured")

    response = await test_client.post("/v1/pricing/fetch-seasonal", json={
        "package_id": package["id"],
        "origin_airports": ["LGW"],
        "destination_airports": ["DEL"],
        "dates": ["2025-07-10"],
    })
    assert response.status_code == 502
    data = response.json()
    assert data["source"] == "serp"
    assert data["retryable"] is True


@pytest.mark.asyncio
async def test_module_switch_wipes_ledger(test_client):
    package = await create_package(test_client, pricing_module="manual")
    await test_client.post("/v1/ledger/upsert", json={
        "package_id": package["id"],
        "departure_airport": "LGW",
        "departure_date": "2025-07-10",
        "price": 880,
    })

    response = await test_client.post(
        "/v1/package/set-module",
        json={"package_id": package["id"], "pricing_module": "upstream_departures"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["entries_removed"] == 1
    assert data["package"]["pricing_module"] == "upstream_departures"


@pytest.mark.asyncio
async def test_departure_sync_and_attach(test_client, fares):
    """Test syncing departures and attaching flights through the API."""
    package = await create_package(
        test_client, pricing_module="upstream_departures", upstream_product_id="4242", flight_source="sunshine"
    )
    fares[("LGW", date(2026, 7, 13))] = 300
    fares[("LGW", date(2026, 8, 10))] = 250

    response = await test_client.post(
        "/v1/departure/sync", json={"package_id": package["id"], "exchange_rate": 1.25}
    )
    assert response.status_code == 200
    data = response.json()
    assert (data["departures_count"], data["rates_count"]) == (2, 3)
    assert data["duration_nights"] == 9

    response = await test_client.post("/v1/departure/attach-flights", json={
        "package_id": package["id"],
        "origin_airports": ["LGW"],
        "destination_airports": ["DEL"],
        "markup_percent": 10,
    })
    assert response.status_code == 200
    assert response.json()["augmentations_stored"] == 3

    response = await test_client.post("/v1/ledger/list", json={"package_id": package["id"]})
    assert [(item["departure_date"], item["price"], item["is_available"]) for item in response.json()["items"]] == [
        ("2026-07-13", 1430, True),
        ("2026-08-10", 1155, False),
    ]

    response = await test_client.post("/v1/departure/list", json={"package_id": package["id"]})
    departures = response.json()["items"]
    assert [departure["source_id"] for departure in departures] == ["9001", "9002"]
    twin = departures[0]["rates"][0]
    assert twin["land_price"] == 1000.0
    assert twin["flight_augmentations"][0]["combined_price"] == 1430

    response = await test_client.post("/v1/run/list", json={"package_id": package["id"]})
    kinds = [run["kind"] for run in response.json()["items"]]
    assert kinds == ["attach_flights", "departure_sync"]


@pytest.mark.asyncio
async def test_departure_sync_upstream_failure(test_client, catalog_payload):
    package = await create_package(test_client, pricing_module="upstream_departures", upstream_product_id="4242")
    catalog_payload["status_code"] = 500

    response = await test_client.post("/v1/departure/sync", json={"package_id": package["id"]})
    assert response.status_code == 502
    assert response.json()["source"] == "bokun"


@pytest.mark.asyncio
async def test_run_list_unknown_package(test_client):
    response = await test_client.post("/v1/run/list", json={"package_id": str(uuid4())})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unexpected_error_is_internal_problem(test_client, monkeypatch):
    """Unexpected failures come back as a 500 Problem carrying an error id."""
    from package_pricing.services.run_service import RunService

    async def broken_list_runs(self, **kwargs):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(RunService, "list_runs", broken_list_runs)

    response = await test_client.post("/v1/run/list", json={})
    assert response.status_code == 500
    problem = response.json()
    assert problem["title"] == "Internal Server Error"
    assert problem["error_id"]
    assert "exploded" not in problem["detail"]
