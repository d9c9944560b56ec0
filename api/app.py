# -*- coding: utf-8 -*-
"""
Routewise FastAPI Application
"""
import os
import logging
import sqlite3
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import registry
from api.routers import optimization, possible_stops, params
from src.errors import EngineError


@asynccontextmanager
async def lifespan(app: FastAPI):
    registry.load()
    yield


app = FastAPI(title="Routewise", version="1.0.0", lifespan=lifespan)


allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(optimization.router, prefix="/api", tags=["route-optimization"])
app.include_router(possible_stops.router, prefix="/api", tags=["stops"])
app.include_router(params.router, prefix="/api", tags=["params"])


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if exc.status_code >= 500:
        logging.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logging.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "errorType": "internal_error", "details": str(exc)},
    )


@app.get(
    "/health",
    summary="서비스 상태 확인",
    description="데이터베이스 연결 여부, 운행 중 노선 수, 저장된 최적화 실행 수를 반환합니다.",
    response_description="status(healthy/degraded/unavailable), version, routes 수, optimization_runs 수",
)
async def health():
    try:
        db = registry.get_database()
        route_count = len(db.fetch_routes(status="active"))
        return {
            "status": "healthy" if route_count > 0 else "degraded",
            "version": "1.0.0",
            "active_routes": route_count,
            "optimization_runs": db.count_optimization_runs(),
        }
    except (RuntimeError, sqlite3.Error):
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "detail": "Database not available"},
        )
