"""Users, subscriptions, price alerts and push history."""
import logging

from dependency_injector.wiring import inject
from fastapi import APIRouter, HTTPException, Query

from market_data_push.container import StoreDep
from market_data_push.db import PriceAlert, PushRecord, Subscription, User
from market_data_push.routers.errors import DOMAIN_EXCEPTIONS, DomainErrorMapper
from market_data_push.schemas import AlertCreate, SubscriptionCreate, UserCreate

logger = logging.getLogger(__name__)
router = APIRouter(tags=["subscriptions"])

_errors = DomainErrorMapper(resource_name="Subscription")


@router.post("/users", response_model=User)
@inject
def create_user(body: UserCreate, store: StoreDep) -> User:
    """Register a user, or refresh the profile of an existing one."""
    try:
        return store.create_user(
            body.user_id,
            body.chat_id,
            username=body.username,
            first_name=body.first_name,
            last_name=body.last_name,
            language_code=body.language_code,
        )
    except DOMAIN_EXCEPTIONS as e:
        _errors.raise_http(e)


@router.delete("/users/{user_id}")
@inject
def delete_user(user_id: int, store: StoreDep) -> dict[str, bool]:
    """Delete a user with their subscriptions, alerts and history."""
    try:
        deleted = store.delete_user(user_id)
    except DOMAIN_EXCEPTIONS as e:
        _errors.raise_http(e)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")
    return {"deleted": True}


@router.post("/subscriptions", response_model=Subscription)
@inject
def add_subscription(body: SubscriptionCreate, store: StoreDep) -> Subscription:
    """Subscribe a user to a category; re-subscribing replaces the settings."""
    try:
        return store.add_subscription(
            body.user_id,
            body.category,
            symbols=body.symbols,
            sources=body.sources,
            schedule=body.schedule,
            price_threshold=body.price_threshold,
        )
    except DOMAIN_EXCEPTIONS as e:
        _errors.raise_http(e)


@router.get("/users/{user_id}/subscriptions", response_model=list[Subscription])
@inject
def list_subscriptions(user_id: int, store: StoreDep) -> list[Subscription]:
    try:
        return store.get_user_subscriptions(user_id)
    except DOMAIN_EXCEPTIONS as e:
        _errors.raise_http(e)


@router.delete("/users/{user_id}/subscriptions/{category}")
@inject
def remove_subscription(user_id: int, category: str, store: StoreDep) -> dict[str, bool]:
    try:
        removed = store.remove_subscription(user_id, category)
    except DOMAIN_EXCEPTIONS as e:
        _errors.raise_http(e)
    if not removed:
        raise HTTPException(
            status_code=404, detail=f"No {category} subscription for user {user_id}"
        )
    return {"removed": True}


@router.post("/alerts", response_model=PriceAlert)
@inject
def create_alert(body: AlertCreate, store: StoreDep) -> PriceAlert:
    """Create a one-shot price alert (condition: above | below)."""
    try:
        return store.create_alert(
            body.user_id, body.symbol, body.target_price, body.condition
        )
    except DOMAIN_EXCEPTIONS as e:
        _errors.raise_http(e)


@router.get("/users/{user_id}/alerts", response_model=list[PriceAlert])
@inject
def list_alerts(
    user_id: int,
    store: StoreDep,
    include_triggered: bool = Query(default=True),
) -> list[PriceAlert]:
    try:
        return store.get_user_alerts(user_id, include_triggered=include_triggered)
    except DOMAIN_EXCEPTIONS as e:
        _errors.raise_http(e)


@router.delete("/alerts/{alert_id}")
@inject
def delete_alert(alert_id: str, store: StoreDep) -> dict[str, bool]:
    try:
        deleted = store.delete_alert(alert_id)
    except DOMAIN_EXCEPTIONS as e:
        _errors.raise_http(e)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return {"deleted": True}


@router.get("/users/{user_id}/history", response_model=list[PushRecord])
@inject
def push_history(
    user_id: int,
    store: StoreDep,
    limit: int = Query(default=50, ge=1, le=500, description="Max records"),
) -> list[PushRecord]:
    """Most recent deliveries to a user, newest first."""
    try:
        return store.get_user_history(user_id, limit=limit)
    except DOMAIN_EXCEPTIONS as e:
        _errors.raise_http(e)


@router.get("/stats")
@inject
def stats(store: StoreDep) -> dict[str, int]:
    try:
        return store.get_stats()
    except DOMAIN_EXCEPTIONS as e:
        _errors.raise_http(e)
