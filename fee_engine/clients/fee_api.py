"""
Async client for the fee-management HTTP API.
Every response is validated into the typed shapes in ``schemas`` before it leaves this module.
"""

import logging
from typing import Any, AsyncGenerator, Dict, List, Optional, Type, TypeVar

import httpx
from fastapi import status
from pydantic import ValidationError

from fee_engine.core.config import settings
from fee_engine.core.exceptions import UpstreamError

from .schemas import (
    AcademicYear,
    ApiEnvelope,
    FeeCategory,
    FeeStructure,
    Invoice,
    RoutePrice,
    Student,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FeeApiClient:
    """Thin wrapper over ``httpx.AsyncClient``. No retries: timeouts come from configuration."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "FeeApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        try:
            response = await self._client.get(path, params=clean_params)
        except httpx.HTTPError as e:
            logger.error("Fee API request GET %s failed: %s", path, e)
            raise UpstreamError(f"Fee API unreachable while fetching {path}")

        if response.status_code == status.HTTP_404_NOT_FOUND:
            raise UpstreamError(f"Not found: {path}", status.HTTP_404_NOT_FOUND)
        if response.is_error:
            logger.error("Fee API GET %s returned %s", path, response.status_code)
            raise UpstreamError(f"Fee API returned {response.status_code} for {path}")

        try:
            return response.json()
        except ValueError:
            raise UpstreamError(f"Fee API returned a non-JSON body for {path}")

    @staticmethod
    def _unwrap(payload: Any, model: Type[T], path: str) -> T:
        try:
            return ApiEnvelope[model].model_validate(payload).data
        except ValidationError as e:
            logger.error("Unexpected payload shape from %s: %s", path, e)
            raise UpstreamError(f"Fee API returned an unexpected payload for {path}")

    # --- Student context ---
    async def get_student(self, student_id: int, school_id: Optional[int] = None) -> Student:
        path = f"/students/{student_id}"
        payload = await self._get(path, {"schoolId": school_id})
        return self._unwrap(payload, Student, path)

    async def get_academic_year(self, academic_year_id: int) -> AcademicYear:
        path = f"/academic-years/{academic_year_id}"
        payload = await self._get(path)
        return self._unwrap(payload, AcademicYear, path)

    # --- Catalog ---
    async def list_fee_structures(
        self,
        school_id: int,
        class_id: int,
        category_head_id: int,
    ) -> List[FeeStructure]:
        path = "/fee-structures"
        payload = await self._get(
            path,
            {
                "schoolId": school_id,
                "classId": class_id,
                "categoryHeadId": category_head_id,
                "status": "active",
            },
        )
        return self._unwrap(payload, List[FeeStructure], path)

    async def get_fee_category(self, fee_category_id: int) -> FeeCategory:
        path = f"/fee-categories/{fee_category_id}"
        payload = await self._get(path)
        return self._unwrap(payload, FeeCategory, path)

    async def list_route_prices(
        self,
        school_id: int,
        route_id: int,
        class_id: int,
        category_head_id: int,
    ) -> List[RoutePrice]:
        path = "/route-prices"
        payload = await self._get(
            path,
            {
                "schoolId": school_id,
                "routeId": route_id,
                "classId": class_id,
                "categoryHeadId": category_head_id,
            },
        )
        return self._unwrap(payload, List[RoutePrice], path)

    # --- Invoices ---
    async def list_invoices(self, student_id: int, school_id: int) -> List[Invoice]:
        path = "/invoices"
        payload = await self._get(path, {"studentId": student_id, "schoolId": school_id})
        return self._unwrap(payload, List[Invoice], path)


async def get_fee_api_client() -> AsyncGenerator[FeeApiClient, None]:
    async with FeeApiClient(
        settings.fee_api_base_url,
        token=settings.fee_api_token,
        timeout=settings.fee_api_timeout_seconds,
    ) as client:
        yield client
