"""API routers for the ops surface.

Includes routes for:
- /jobs - Scheduled job status and pause/resume/run
- /market - On-demand price comparison, funding rates and rate-limit usage
- /users, /subscriptions, /alerts - Subscription and alert management, push history
"""
from market_data_push.routers.jobs import router as jobs_router
from market_data_push.routers.market import router as market_router
from market_data_push.routers.subscriptions import \
    router as subscriptions_router

__all__ = [
    "jobs_router",
    "market_router",
    "subscriptions_router",
]
