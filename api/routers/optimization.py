# -*- coding: utf-8 -*-
"""
Route Optimization Router
=========================
Runs the transfer planner for a service date and exposes the audit history
of previous runs.
"""
import asyncio
import logging
import sqlite3
from typing import List, Union

from fastapi import APIRouter, Query

from api.dependencies import registry
from api.schemas import (
    NoLowCrowdResponse, OptimizationHistoryItem, OptimizationRecordResponse,
    OptimizationRequest, OptimizationResponse,
)
from src.errors import DependencyError, NotFoundError

router = APIRouter()


@router.post(
    "/route-optimization",
    response_model=Union[OptimizationResponse, NoLowCrowdResponse],
    summary="저이용 노선 승객 이관 분석",
    description="지정한 운행일의 저이용 노선(승객 1~30명)을 찾고, 같은 정류장을 지나는 "
    "다른 노선으로 이관 가능한 승객을 계산합니다. 노선별 full/partial/no transfer 분류와 "
    "예상 절감액을 반환하며, 실행 결과는 이력으로 저장됩니다.",
    response_description="요약(summary), 노선별 이관 결과(lowCrowdRoutes), 노선 부하 분석",
)
async def run_optimization(req: OptimizationRequest):
    planner = registry.get_planner()
    # EngineError subclasses are rendered by the app-level handler
    outcome = await asyncio.to_thread(
        planner.run, req.date, req.requesterId, req.useEnhancedStops
    )
    body = outcome.to_dict()
    if not outcome.has_low_crowd_routes:
        return NoLowCrowdResponse(**body)
    return OptimizationResponse(**body)


@router.get(
    "/route-optimization/history",
    response_model=List[OptimizationHistoryItem],
    summary="최적화 실행 이력",
    description="저장된 최적화 실행 기록을 최신순으로 반환합니다 (노선별 상세 제외).",
    response_description="실행 ID, 운행일, 요청자, 요약 통계",
)
async def optimization_history(limit: int = Query(20, ge=1, le=200)):
    try:
        return registry.get_database().fetch_optimization_runs(limit)
    except sqlite3.Error as e:
        logging.error(f"History query failed: {e}", exc_info=True)
        raise DependencyError("Failed to load optimization history", details=str(e))


@router.get(
    "/route-optimization/{optimization_id}",
    response_model=OptimizationRecordResponse,
    summary="최적화 실행 상세",
    description="저장된 최적화 실행 한 건의 요약과 노선별 이관 결과를 반환합니다.",
    response_description="실행 기록 전체",
)
async def get_optimization(optimization_id: int):
    try:
        record = registry.get_database().get_optimization_run(optimization_id)
    except sqlite3.Error as e:
        logging.error(f"Optimization lookup failed: {e}", exc_info=True)
        raise DependencyError("Failed to load optimization record", details=str(e))
    if record is None:
        raise NotFoundError(f"Optimization record not found: {optimization_id}", field="optimizationId")
    return record
