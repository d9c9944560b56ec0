# -*- coding: utf-8 -*-
"""
Route Stops Router
==================
Regular + possible stop listing, possible stop management, and stop search
used to pick candidate possible stops from other routes.
"""
from typing import Optional

from fastapi import APIRouter, Query

from api.dependencies import registry
from api.schemas import (
    AddPossibleStopsRequest, AddPossibleStopsResponse, DeleteStopResponse,
    PossibleStopsResponse, RouteStopsResponse, SearchStopsResponse,
)

router = APIRouter()


@router.get(
    "/routes/search-stops",
    response_model=SearchStopsResponse,
    summary="다른 노선 정류장 검색",
    description="정류장 이름으로 다른 노선의 정규 정류장을 검색합니다. "
    "결과는 소속 노선별로 묶여 반환됩니다.",
    response_description="노선별 정류장 목록과 총 개수",
)
async def search_stops(
    q: str = Query("", max_length=100, description="정류장 이름 검색어 (부분 일치)"),
    excludeRouteId: Optional[str] = Query(None, description="제외할 노선 ID"),
    limit: int = Query(20),
):
    groups = registry.get_stop_registry().search_stops(q, excludeRouteId, limit)
    return SearchStopsResponse(
        stops=groups,
        totalCount=sum(len(g["stops"]) for g in groups),
        message="Search completed successfully",
    )


@router.get(
    "/routes/{route_id}/stops",
    response_model=RouteStopsResponse,
    summary="노선 전체 정류장 조회",
    description="노선의 정규 정류장과 가능 정류장(다른 노선에서 가져온 정류장)을 "
    "순서대로 함께 반환합니다.",
    response_description="stop_category(regular/possible)와 출처 노선명이 포함된 정류장 목록",
)
async def list_route_stops(route_id: str):
    stops = registry.get_stop_registry().list_stops(route_id)
    return RouteStopsResponse(routeId=route_id, stops=[s.to_dict() for s in stops])


@router.get(
    "/routes/{route_id}/possible-stops",
    response_model=PossibleStopsResponse,
    summary="가능 정류장 조회",
    response_description="출처 노선명이 포함된 가능 정류장 목록",
)
async def list_possible_stops(route_id: str):
    stops = registry.get_stop_registry().list_possible_stops(route_id)
    return PossibleStopsResponse(possibleStops=[s.to_dict() for s in stops])


@router.post(
    "/routes/{route_id}/possible-stops",
    response_model=AddPossibleStopsResponse,
    summary="가능 정류장 추가",
    description="다른 노선의 정류장을 이 노선의 가능 정류장으로 추가합니다. "
    "이미 있는 (정류장명, 출처 노선) 조합은 건너뜁니다. 동시 삽입 충돌은 409로 응답합니다.",
    response_description="추가/건너뜀 개수와 추가된 정류장",
)
async def add_possible_stops(route_id: str, req: AddPossibleStopsRequest):
    candidates = None
    if req.possibleStops is not None:
        candidates = [c.model_dump() for c in req.possibleStops]
    result = registry.get_stop_registry().add_possible_stops(route_id, candidates)
    return AddPossibleStopsResponse(
        message=result.message,
        addedCount=len(result.added),
        skippedCount=len(result.skipped),
        skippedStops=result.skipped,
        data=[s.to_dict() for s in result.added],
    )


@router.delete(
    "/routes/{route_id}/possible-stops/{stop_id}",
    response_model=DeleteStopResponse,
    summary="가능 정류장 삭제",
    description="해당 노선에 속한 가능 정류장만 삭제합니다. 다른 노선의 정류장 ID는 404.",
)
async def delete_possible_stop(route_id: str, stop_id: int):
    registry.get_stop_registry().delete_possible_stop(route_id, stop_id)
    return DeleteStopResponse(message="Possible stop deleted successfully")
