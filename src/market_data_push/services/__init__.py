"""Aggregation, delivery and the scheduled push jobs."""
from market_data_push.services.aggregator import (PriceAggregator,
                                                  build_comparison)
from market_data_push.services.alerts import AlertEvaluator, alert_matches
from market_data_push.services.broadcast import (BroadcastDispatcher,
                                                 BroadcastReport)
from market_data_push.services.push_jobs import PushJobs

__all__ = [
    "AlertEvaluator",
    "BroadcastDispatcher",
    "BroadcastReport",
    "PriceAggregator",
    "PushJobs",
    "alert_matches",
    "build_comparison",
]
