"""On-demand market views over the configured sources."""
import logging

from dependency_injector.wiring import inject
from fastapi import APIRouter, HTTPException, Query

from market_data_push.container import AggregatorDep
from market_data_push.schemas import FundingRate, PriceComparison

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/market", tags=["market"])


def _parse_sources(sources: str | None) -> list[str] | None:
    if not sources:
        return None
    return [s.strip().lower() for s in sources.split(",") if s.strip()] or None


@router.get("/compare/{symbol}", response_model=PriceComparison)
@inject
async def compare_prices(
    symbol: str,
    aggregator: AggregatorDep,
    sources: str | None = Query(default=None, description="Comma-separated sources"),
    funding: bool = Query(default=False, description="Attach funding rates"),
) -> PriceComparison:
    """Compare the last price of a symbol (e.g. BTCUSDT) across sources."""
    comparison = await aggregator.compare_across_sources(
        symbol, _parse_sources(sources), include_funding_rates=funding
    )
    if comparison is None:
        raise HTTPException(status_code=404, detail=f"No source returned a price for '{symbol}'")
    return comparison


@router.get("/funding/{symbol}", response_model=list[FundingRate])
@inject
async def funding_rates(
    symbol: str,
    aggregator: AggregatorDep,
    sources: str | None = Query(default=None, description="Comma-separated sources"),
) -> list[FundingRate]:
    """Funding rates for a perpetual symbol from every source that answered."""
    return await aggregator.aggregate_funding_rates(symbol, _parse_sources(sources))


@router.get("/limits")
@inject
async def rate_limits(aggregator: AggregatorDep) -> list[dict]:
    """Current rate-limit window usage per source."""
    return aggregator.get_rate_limit_stats()
