# -*- coding: utf-8 -*-
import os
from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from api.dependencies import registry
from api.schemas import OptimizationParamsRequest, OptimizationParamsResponse

router = APIRouter()


def verify_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """API Key 검증 (env var ROUTEWISE_API_KEY가 설정된 경우만)"""
    api_key = os.getenv("ROUTEWISE_API_KEY")
    if api_key:  # env var가 설정된 경우만 검증
        if not x_api_key or x_api_key != api_key:
            raise HTTPException(status_code=403, detail="유효하지 않은 API 키입니다")


def _to_response(params) -> OptimizationParamsResponse:
    return OptimizationParamsResponse(
        nominal_capacity=params.nominal_capacity,
        low_crowd_threshold=params.low_crowd_threshold,
        full_transfer_savings=params.full_transfer_savings,
        per_passenger_savings=params.per_passenger_savings,
        decrement_on_assign=params.decrement_on_assign,
        run_deadline_seconds=params.run_deadline_seconds,
        landmark_keywords=list(params.landmark_keywords),
        location_tokens=list(params.location_tokens),
    )


@router.post(
    "/optimization-params",
    response_model=OptimizationParamsResponse,
    summary="최적화 파라미터 조정",
    description="버스 정원, 저이용 기준(승객 수), 절감액 상수, 좌석 차감 여부를 "
    "런타임에 조정합니다. 이후 실행부터 적용됩니다.",
    response_description="적용된 파라미터 값",
)
async def update_params(req: OptimizationParamsRequest, _: None = Depends(verify_api_key)):
    """최적화 파라미터를 런타임에 조정한다."""
    with registry.params_lock:
        current = registry.get_planner().params
        changes = req.model_dump(exclude_none=True)
        params = replace(current, **changes) if changes else current
        registry.set_params(params)
    return _to_response(params)


@router.get(
    "/optimization-params",
    response_model=OptimizationParamsResponse,
    summary="현재 파라미터 조회",
    description="현재 설정된 최적화 파라미터와 정류장 매칭 키워드를 반환합니다.",
)
async def get_params():
    return _to_response(registry.get_planner().params)
