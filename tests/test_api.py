"""Tests for the FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any
from unittest.mock import patch

import httpx
import pytest
from fastapi import status
from openpyxl import Workbook, load_workbook

from indent_ledger.api import create_app

DATE = "2024-06-01"


@asynccontextmanager
async def create_test_client(
    workbook_path: Path,
    patches: dict[str, Any] | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Create an async test client bound to the given workbook.

    Args:
        workbook_path: Workbook the ledger should operate on.
        patches: Optional dictionary of extra patch targets and values.
    """
    patch_targets = {
        "indent_ledger.api.settings.workbook_path": workbook_path,
        **(patches or {}),
    }
    for target, value in patch_targets.items():
        patch(target, value).start()
    try:
        app = create_app()
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://test",
        ) as client:
            yield client
    finally:
        patch.stopall()


@pytest.fixture
async def client(workbook_path: Path) -> AsyncIterator[httpx.AsyncClient]:
    async with create_test_client(workbook_path) as ac:
        yield ac


@pytest.fixture
async def dated_client(client: httpx.AsyncClient) -> httpx.AsyncClient:
    response = await client.post("/api/sheet", json={"date": DATE})
    assert response.status_code == status.HTTP_200_OK
    return client


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    async def test_health_check(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health")
        data = response.json()

        assert response.status_code == status.HTTP_200_OK
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert isinstance(datetime.fromisoformat(data["timestamp"]), datetime)

    async def test_request_id_is_echoed(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"


class TestSheetEndpoint:
    """Tests for POST /api/sheet."""

    async def test_create_then_exists(self, client: httpx.AsyncClient) -> None:
        first = await client.post("/api/sheet", json={"date": DATE})
        second = await client.post("/api/sheet", json={"date": DATE})

        assert first.json() == {"status": "created", "sheetName": DATE}
        assert second.json() == {"status": "exists", "sheetName": DATE}

    async def test_missing_date(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/sheet", json={})
        data = response.json()

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert data["error"] == "Missing date"
        assert data["error_code"] == "E1001"
        assert "request_id" in data

    async def test_missing_body(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/sheet")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Missing fields"

    async def test_invalid_sheet_name(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/sheet", json={"date": "01/06/2024"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "E1002"

    async def test_numeric_date_key(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/sheet", json={"date": 20240601})

        assert response.json() == {"status": "created", "sheetName": "20240601"}

    async def test_falls_back_to_first_sheet(self, tmp_path: Path) -> None:
        path = tmp_path / "blank.xlsx"
        Workbook().save(path)
        async with create_test_client(path) as ac:
            response = await ac.post("/api/sheet", json={"date": DATE})

        assert response.json() == {"status": "created", "sheetName": DATE}

    async def test_name_differing_only_by_case(
        self, client: httpx.AsyncClient, workbook_path: Path
    ) -> None:
        response = await client.post("/api/sheet", json={"date": "master"})
        data = response.json()

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert data["error_code"] == "E1004"
        assert data["details"]["existing_sheet"] == "MASTER"
        assert load_workbook(workbook_path).sheetnames == ["Notes", "MASTER"]


class TestGetCompanyEndpoint:
    """Tests for POST /api/get-company."""

    async def test_reads_quantities(self, dated_client: httpx.AsyncClient) -> None:
        response = await dated_client.post(
            "/api/get-company", json={"date": DATE, "company": " acmeco "}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "quantities": {"Tomato": 5, "Onion": "", "Potato": 7}
        }

    async def test_unknown_company(self, dated_client: httpx.AsyncClient) -> None:
        response = await dated_client.post(
            "/api/get-company", json={"date": DATE, "company": "Initech"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"quantities": {}}

    async def test_sheet_not_found(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/get-company", json={"date": DATE, "company": "AcmeCo"}
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "Sheet not found"

    async def test_missing_company(self, dated_client: httpx.AsyncClient) -> None:
        response = await dated_client.post("/api/get-company", json={"date": DATE})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["details"] == {"field": "company"}


class TestUpdateCompanyEndpoint:
    """Tests for POST /api/update-company."""

    async def test_update_and_read_back(
        self, dated_client: httpx.AsyncClient, workbook_path: Path
    ) -> None:
        response = await dated_client.post(
            "/api/update-company",
            json={
                "date": DATE,
                "company": "Globex",
                "quantities": {"Tomato": "3", "Onion": 4, "Unobtainium": 5},
            },
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "updated": [
                {"veg": "Tomato", "status": "updated"},
                {"veg": "Onion", "status": "updated"},
                {"veg": "Unobtainium", "status": "not-found"},
            ]
        }
        ws = load_workbook(workbook_path)[DATE]
        assert ws["D2"].value == 3
        assert ws["D3"].value == "=C3*2"

        read = await dated_client.post(
            "/api/get-company", json={"date": DATE, "company": "Globex"}
        )
        assert read.json()["quantities"]["Tomato"] == 3

    async def test_unknown_company(self, dated_client: httpx.AsyncClient) -> None:
        response = await dated_client.post(
            "/api/update-company",
            json={"date": DATE, "company": "Initech", "quantities": {"Tomato": 1}},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == 'Company "Initech" not found in header row'
        assert response.json()["error_code"] == "E2002"

    async def test_missing_quantities(self, dated_client: httpx.AsyncClient) -> None:
        response = await dated_client.post(
            "/api/update-company", json={"date": DATE, "company": "AcmeCo"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Missing quantities"

    async def test_strict_quantities(self, workbook_path: Path) -> None:
        patches = {"indent_ledger.api.settings.strict_quantities": True}
        async with create_test_client(workbook_path, patches) as ac:
            await ac.post("/api/sheet", json={"date": DATE})
            response = await ac.post(
                "/api/update-company",
                json={
                    "date": DATE,
                    "company": "AcmeCo",
                    "quantities": {"Tomato": "a dozen"},
                },
            )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "E1003"


class TestDownloadEndpoint:
    """Tests for GET /download."""

    async def test_download(
        self, client: httpx.AsyncClient, workbook_path: Path
    ) -> None:
        response = await client.get("/download")

        assert response.status_code == status.HTTP_200_OK
        assert response.content == workbook_path.read_bytes()
        assert "Indent.xlsx" in response.headers["content-disposition"]

    async def test_download_missing(self, tmp_path: Path) -> None:
        async with create_test_client(tmp_path / "absent.xlsx") as ac:
            response = await ac.get("/download")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "E4002"
