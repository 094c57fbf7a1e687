"""Resolve the fee structures and transport price that apply to a student."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, FrozenSet, Iterable, List, Optional

from fee_engine.clients.fee_api import FeeApiClient
from fee_engine.clients.schemas import FeeStructure, RoutePrice
from fee_engine.core.exceptions import PreconditionError, UpstreamError

from .schedule import ALL_MONTHS, normalize_applicable_months

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "active"


@dataclass(frozen=True)
class ResolvedFeeStructure:
    fee_structure: FeeStructure
    applicable_months: FrozenSet[int] = ALL_MONTHS


@dataclass(frozen=True)
class ResolvedTransport:
    route_price: RoutePrice
    applicable_months: FrozenSet[int] = ALL_MONTHS


@dataclass(frozen=True)
class FeeCatalog:
    fee_structures: List[ResolvedFeeStructure] = field(default_factory=list)
    transport: Optional[ResolvedTransport] = None

    @property
    def fee_structure_ids(self) -> FrozenSet[int]:
        return frozenset(r.fee_structure.id for r in self.fee_structures)


async def gather_settled(*aws: Awaitable[Any]) -> List[Any]:
    """
    Run awaitables concurrently and wait for all of them before raising the first error,
    so no fetch is left running once the caller closes the client.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


def is_active(fee_structure: FeeStructure) -> bool:
    return fee_structure.status is None or fee_structure.status.strip().lower() == ACTIVE_STATUS


def select_route_price(
    route_prices: List[RoutePrice],
    route_id: int,
    class_id: int,
    category_head_id: int,
) -> Optional[RoutePrice]:
    """Exact (route, class, category head) match, then class-agnostic, then the first row."""
    if not route_prices:
        return None
    for rp in route_prices:
        if rp.route_id == route_id and rp.class_id == class_id and rp.category_head_id == category_head_id:
            return rp
    for rp in route_prices:
        if rp.route_id == route_id and rp.class_id is None and rp.category_head_id == category_head_id:
            return rp
    return route_prices[0]


class FeeCatalogResolver:
    def __init__(self, client: FeeApiClient) -> None:
        self.client = client

    async def resolve(
        self,
        school_id: Optional[int],
        class_id: Optional[int],
        category_head_id: Optional[int],
        route_id: Optional[int],
    ) -> FeeCatalog:
        missing = [
            name
            for name, value in (
                ("school", school_id),
                ("class", class_id),
                ("category head", category_head_id),
                ("route", route_id),
            )
            if value is None
        ]
        if missing:
            raise PreconditionError(missing)

        listed, route_price = await gather_settled(
            self.client.list_fee_structures(school_id, class_id, category_head_id),
            self._resolve_route_price(school_id, route_id, class_id, category_head_id),
        )
        fee_structures = [fs for fs in listed if is_active(fs)]
        if len(fee_structures) != len(listed):
            logger.info("Ignoring %d inactive fee structure(s) returned for class %s", len(listed) - len(fee_structures), class_id)

        category_ids = {fs.fee_category_id for fs in fee_structures if fs.fee_category_id is not None}
        if route_price is not None and route_price.fee_category_id is not None:
            category_ids.add(route_price.fee_category_id)
        months_by_category = await self._resolve_category_months(category_ids)

        resolved = [
            ResolvedFeeStructure(fs, months_by_category.get(fs.fee_category_id, ALL_MONTHS))
            for fs in fee_structures
        ]
        transport = None
        if route_price is not None:
            transport = ResolvedTransport(
                route_price,
                months_by_category.get(route_price.fee_category_id, ALL_MONTHS),
            )
        return FeeCatalog(fee_structures=resolved, transport=transport)

    async def _resolve_route_price(
        self,
        school_id: int,
        route_id: int,
        class_id: int,
        category_head_id: int,
    ) -> Optional[RoutePrice]:
        try:
            route_prices = await self.client.list_route_prices(school_id, route_id, class_id, category_head_id)
        except UpstreamError as e:
            logger.warning("Route price lookup failed for route %s, continuing without transport: %s", route_id, e.message)
            return None
        route_price = select_route_price(route_prices, route_id, class_id, category_head_id)
        if route_price is None:
            logger.info("No route price for route %s, class %s, category head %s", route_id, class_id, category_head_id)
        return route_price

    async def _resolve_category_months(self, category_ids: Iterable[int]) -> Dict[int, FrozenSet[int]]:
        ordered_ids = sorted(category_ids)
        results = await asyncio.gather(
            *(self.client.get_fee_category(cid) for cid in ordered_ids),
            return_exceptions=True,
        )
        months: Dict[int, FrozenSet[int]] = {}
        for cid, result in zip(ordered_ids, results):
            if isinstance(result, UpstreamError):
                logger.warning("Fee category %s unavailable, applying fee to all months: %s", cid, result.message)
                months[cid] = ALL_MONTHS
            elif isinstance(result, BaseException):
                raise result
            else:
                months[cid] = normalize_applicable_months(result.applicable_months)
        return months
