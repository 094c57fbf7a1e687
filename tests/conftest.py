import os

os.environ.setdefault("FEE_API_BASE_URL", "http://fee-api.test/api")

from typing import Any, AsyncGenerator, Dict, List, Set

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from fee_engine.clients.fee_api import FeeApiClient, get_fee_api_client
from fee_engine.main import app


class FakeFeeApi:
    """In-memory fee-management API served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.students: Dict[int, Dict[str, Any]] = {}
        self.academic_years: Dict[int, Dict[str, Any]] = {}
        self.fee_structures: List[Dict[str, Any]] = []
        self.fee_categories: Dict[int, Dict[str, Any]] = {}
        self.route_prices: List[Dict[str, Any]] = []
        self.invoices: List[Dict[str, Any]] = []
        self.failing_paths: Set[str] = set()
        self.wrap_in_envelope = False
        self.requests: List[httpx.Request] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def _ok(self, payload: Any) -> httpx.Response:
        if self.wrap_in_envelope:
            payload = {"data": payload, "meta": {"total": len(payload) if isinstance(payload, list) else 1}}
        return httpx.Response(200, json=payload)

    @staticmethod
    def _matches(row: Dict[str, Any], params: httpx.QueryParams, keys: List[str]) -> bool:
        for key in keys:
            if key in params and str(row.get(key)) != params[key]:
                return False
        return True

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/api"):
            path = path[len("/api"):]
        if path in self.failing_paths:
            return httpx.Response(500, json={"message": "Internal server error"})

        params = request.url.params
        parts = path.strip("/").split("/")
        resource = parts[0]

        if resource == "students" and len(parts) == 2:
            student = self.students.get(int(parts[1]))
            return self._ok(student) if student else httpx.Response(404, json={"message": "Student not found"})
        if resource == "academic-years" and len(parts) == 2:
            year = self.academic_years.get(int(parts[1]))
            return self._ok(year) if year else httpx.Response(404, json={"message": "Academic year not found"})
        if resource == "fee-categories" and len(parts) == 2:
            category = self.fee_categories.get(int(parts[1]))
            return self._ok(category) if category else httpx.Response(404, json={"message": "Category not found"})
        if resource == "fee-structures":
            rows = [r for r in self.fee_structures if self._matches(r, params, ["classId", "categoryHeadId"])]
            return self._ok(rows)
        if resource == "route-prices":
            rows = [r for r in self.route_prices if self._matches(r, params, ["routeId"])]
            return self._ok(rows)
        if resource == "invoices":
            rows = [r for r in self.invoices if self._matches(r, params, ["studentId"])]
            return self._ok(rows)
        return httpx.Response(404, json={"message": f"No route for {path}"})


def seed_registry(api: FakeFeeApi) -> FakeFeeApi:
    """Student 1 in class 10 / category head 3 / route 7, academic year starting April 2024."""
    api.students[1] = {
        "id": 1,
        "schoolId": 1,
        "academicYearId": 2,
        "classId": 10,
        "class": {"id": 10, "name": "Class 5"},
        "categoryHead": {"id": 3, "name": "General"},
        "routeId": 7,
        "openingBalance": "300.00",
    }
    api.academic_years[2] = {"id": 2, "name": "2024-25", "startDate": "2024-04-01T00:00:00.000Z"}
    api.fee_structures = [
        {"id": 101, "name": "Tuition Fee", "amount": "500.00", "feeCategoryId": 11, "classId": 10, "categoryHeadId": 3, "status": "active"},
        {"id": 102, "name": "Exam Fee", "amount": "200.00", "feeCategoryId": 12, "classId": 10, "categoryHeadId": 3, "status": "active"},
    ]
    api.fee_categories = {
        11: {"id": 11, "name": "Monthly", "applicableMonths": []},
        12: {"id": 12, "name": "Exams", "applicableMonths": [6, 12]},
        13: {"id": 13, "name": "Transport", "applicableMonths": [5, 6, 7, 8, 9, 10, 11, 12, 1, 2, 3]},
    }
    api.route_prices = [
        {"id": 55, "routeId": 7, "classId": None, "categoryHeadId": 3, "amount": "300.00", "feeCategoryId": None},
        {"id": 56, "routeId": 7, "classId": 10, "categoryHeadId": 3, "amount": "400.00", "feeCategoryId": 13},
    ]
    api.invoices = [
        {
            "id": 900,
            "studentId": 1,
            "totalAmount": "1500.00",
            "paidAmount": "750.00",
            "items": [
                {"description": "Tuition Fee", "amount": "1500.00", "sourceType": "FEE", "sourceId": 101},
            ],
        },
        {
            "id": 901,
            "studentId": 1,
            "totalAmount": "500.00",
            "paidAmount": "500.00",
            "items": [
                {"description": "Ledger Balance", "amount": "200.00", "sourceType": None, "sourceId": None},
                {"description": "Transport Fee - Route 7", "amount": "300.00", "sourceType": "TRANSPORT", "sourceId": 56},
            ],
        },
    ]
    return api


@pytest.fixture()
def fake_api() -> FakeFeeApi:
    return FakeFeeApi()


@pytest.fixture()
def seeded_api(fake_api: FakeFeeApi) -> FakeFeeApi:
    return seed_registry(fake_api)


@pytest.fixture()
async def fee_api_client(fake_api: FakeFeeApi) -> AsyncGenerator[FeeApiClient, None]:
    async with FeeApiClient("http://fee-api.test/api", token="test-token", transport=fake_api.transport()) as api_client:
        yield api_client


@pytest.fixture()
async def client(fake_api: FakeFeeApi) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, with the upstream API faked."""

    async def override_get_fee_api_client() -> AsyncGenerator[FeeApiClient, None]:
        async with FeeApiClient("http://fee-api.test/api", transport=fake_api.transport()) as api_client:
            yield api_client

    app.dependency_overrides[get_fee_api_client] = override_get_fee_api_client
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
