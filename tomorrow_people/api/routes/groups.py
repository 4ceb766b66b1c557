"""
tomorrow_people.api.routes.groups — Event groups & subscriptions
=================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from tomorrow_people.api.deps import get_current_user, get_engine, get_optional_user, service_errors
from tomorrow_people.services import group_service

router = APIRouter(prefix="/groups", tags=["groups"])


@router.get("")
def list_groups(search: str | None = Query(None), engine=Depends(get_engine)):
    groups = group_service.list_groups(engine, search)
    return {"groups": groups, "total": len(groups)}


@router.get("/subscriptions")
def my_subscriptions(user: dict = Depends(get_current_user), engine=Depends(get_engine)):
    return {"subscriptions": group_service.list_subscriptions(engine, user["id"])}


@router.get("/{creator_id}")
def host_groups(creator_id: str, engine=Depends(get_engine)):
    return {"groups": group_service.list_host_groups(engine, creator_id)}


@router.get("/{creator_id}/{group_name}")
def get_group(
    creator_id: str,
    group_name: str,
    user: dict | None = Depends(get_optional_user),
    engine=Depends(get_engine),
):
    group = group_service.get_group(engine, creator_id, group_name, user["id"] if user else None)
    if group is None:
        raise HTTPException(404, "Host not found")
    return group


@router.put("/{creator_id}/{group_name}/subscription")
def subscribe(
    creator_id: str,
    group_name: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        return group_service.subscribe(engine, user["id"], creator_id, group_name)


@router.delete("/{creator_id}/{group_name}/subscription", status_code=204)
def unsubscribe(
    creator_id: str,
    group_name: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    if not group_service.unsubscribe(engine, user["id"], creator_id, group_name):
        raise HTTPException(404, "Not subscribed to this group")


@router.get("/{creator_id}/{group_name}/subscribers")
def subscribers(
    creator_id: str,
    group_name: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Who follows the caller's group."""
    with service_errors():
        people = group_service.list_subscribers(engine, creator_id, group_name, user["id"])
    return {"subscribers": people}
