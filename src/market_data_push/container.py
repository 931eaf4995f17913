"""DI container. Wire via init_container(); endpoints use Depends(Provide[Container.*])."""
from typing import Annotated

from dependency_injector import containers, providers
from dependency_injector.wiring import Provide
from fastapi import Depends

from market_data_push.config import Settings
from market_data_push.db import SubscriptionStore, create_db_engine
from market_data_push.notifications import TelegramChannel
from market_data_push.providers import CoinGeckoProvider, build_source_clients
from market_data_push.scheduler import TaskScheduler
from market_data_push.services import (AlertEvaluator, BroadcastDispatcher,
                                       PriceAggregator, PushJobs)


def _pick_coingecko(clients: dict) -> CoinGeckoProvider:
    client = clients.get("coingecko")
    if not isinstance(client, CoinGeckoProvider):
        raise ValueError("The coingecko source must be configured for trending and price pushes")
    return client


def _pick_source(clients: dict, name: str):
    if name not in clients:
        raise ValueError(f"Unknown alert source: {name}. Available: {', '.join(clients)}")
    return clients[name]


class Container(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(
        modules=[
            "market_data_push.routers.jobs",
            "market_data_push.routers.market",
            "market_data_push.routers.subscriptions",
        ]
    )

    settings = providers.Singleton(Settings.from_env)

    engine = providers.Singleton(
        create_db_engine,
        settings.provided.database_url,
        echo=settings.provided.sql_echo,
    )
    store = providers.Singleton(SubscriptionStore, engine)

    source_clients = providers.Singleton(
        lambda s: build_source_clients(s.sources.values()), settings
    )
    coingecko = providers.Callable(_pick_coingecko, source_clients)
    alert_source = providers.Callable(
        _pick_source, source_clients, settings.provided.alert_source
    )

    aggregator = providers.Singleton(
        PriceAggregator,
        source_clients,
        settings.provided.comparison_sources,
    )

    channel = providers.Singleton(TelegramChannel, settings.provided.bot_token)
    dispatcher = providers.Singleton(BroadcastDispatcher, store, channel)
    alert_evaluator = providers.Singleton(AlertEvaluator, store, alert_source, channel)

    push_jobs = providers.Singleton(
        PushJobs,
        store,
        aggregator,
        coingecko,
        dispatcher,
        alert_evaluator,
        tracked_symbols=settings.provided.tracked_symbols,
        tracked_coin_ids=settings.provided.tracked_coin_ids,
        comparison_sources=settings.provided.comparison_sources,
        history_retention_days=settings.provided.history_retention_days,
    )

    scheduler = providers.Singleton(
        TaskScheduler,
        settings.provided.scheduler_timezone,
        settings.provided.scheduler_max_jobs,
    )


# Type aliases for route injection (avoid repeating Annotated[...] in every route)
SchedulerDep = Annotated[TaskScheduler, Depends(Provide[Container.scheduler])]
StoreDep = Annotated[SubscriptionStore, Depends(Provide[Container.store])]
AggregatorDep = Annotated[PriceAggregator, Depends(Provide[Container.aggregator])]


def init_container() -> Container:
    """Create container and wire to router modules."""
    container = Container()
    container.wire()
    return container
