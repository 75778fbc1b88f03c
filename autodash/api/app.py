# autodash/api/app.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from autodash.common.ai_client import AIClient, AIConfig
from autodash.common.pipeline import build_results_payload, error_payload
from autodash.engine import (
    AnalysisError,
    InvalidRequestError,
    MissingFileError,
    UnknownActionError,
    decode_upload,
    ensure_csv_filename,
    run_pipeline,
    settings_for,
)

# ---- Env ----
DEFAULT_PROFILE = os.environ.get("ANALYSIS_PROFILE", "standard")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

# ---- Logging ----
logger = logging.getLogger("autodash.api")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)
logger.setLevel(logging.INFO)

# ---- AI ----
ai_client = AIClient(AIConfig.from_env())

# ---- App ----
app = FastAPI(title="AutoDash API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"],
    allow_credentials=False,
)


# ---- Models ----
class ExplainRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: Any = None
    chart_data: List[Any] = Field(default_factory=list, alias="chartData")
    chart_type: str = Field("", alias="chartType")
    title: str = ""


class ForecastRequest(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list)
    column: str
    periods: int = Field(6, ge=1, le=60)


class QueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str
    column_info: List[Dict[str, Any]] = Field(default_factory=list, alias="columnInfo")


# ---- Errors ----
@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    logger.warning(
        "request rejected",
        extra={"path": request.url.path, "error": str(exc), "error_type": type(exc).__name__},
    )
    return JSONResponse(status_code=400, content=error_payload(str(exc), exc.details))


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning("invalid request body", extra={"path": request.url.path, "errors": exc.error_count()})
    return JSONResponse(status_code=400, content=error_payload("Invalid request body", str(exc)))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("invalid request parameters", extra={"path": request.url.path, "errors": len(exc.errors())})
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}" for error in exc.errors()
    )
    return JSONResponse(status_code=400, content=error_payload("Invalid request parameters", details))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    logger.warning("request failed", extra={"path": request.url.path, "status_code": exc.status_code})
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload("Request could not be processed", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


# ---- Helpers ----
async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidRequestError("Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return body


async def _run_action(action: str, request: Request) -> Dict[str, Any]:
    body = await _json_body(request)
    if action == "explain":
        explain = ExplainRequest.model_validate(body)
        explanation = await run_in_threadpool(
            ai_client.explain, explain.data, explain.chart_data, explain.chart_type, explain.title
        )
        return {"explanation": explanation}
    if action == "forecast":
        forecast = ForecastRequest.model_validate(body)
        points = await run_in_threadpool(ai_client.forecast, forecast.data, forecast.column, forecast.periods)
        return {"forecast": points}
    if action == "query":
        query = QueryRequest.model_validate(body)
        return await run_in_threadpool(ai_client.query, query.question, query.column_info)
    raise UnknownActionError(f"Unknown action: {action}")


# ---- Routes ----
@app.get("/health")
def health():
    return {"ok": True}


@app.post("/analyze")
async def analyze(
    request: Request,
    action: Optional[str] = Query(None),
    profile: Optional[str] = Query(None),
    report: bool = Query(False),
    previews: bool = Query(False),
):
    if action:
        logger.info("running action", extra={"action": action})
        return await _run_action(action, request)

    try:
        settings = settings_for(profile or DEFAULT_PROFILE)
    except ValueError as exc:
        raise InvalidRequestError(str(exc)) from exc
    settings = settings.with_options(build_report=report, render_previews=previews)

    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise MissingFileError("No file provided")
    filename = upload.filename or ""
    ensure_csv_filename(filename)
    body = await upload.read()
    await upload.close()

    try:
        result = await run_in_threadpool(
            run_pipeline,
            decode_upload(body),
            source_name=filename,
            settings=settings,
            ai_client=ai_client,
        )
    except AnalysisError:
        raise
    except Exception as exc:
        logger.exception("analysis failed", extra={"source": filename, "profile": settings.name})
        return JSONResponse(status_code=400, content=error_payload("Failed to process CSV file", str(exc)))

    logger.info(
        "analysis completed",
        extra={
            "source": filename,
            "profile": settings.name,
            "rows": result.table.row_count,
            "charts": len(result.visualizations),
        },
    )
    return build_results_payload(result, include_report=report, include_previews=previews)


# ---- Middleware ----
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    try:
        response = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)
        logger.info(
            "request completed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "request_id": request_id,
            },
        )
        response.headers.setdefault("x-request-id", request_id)
        return response
    except Exception:
        duration_ms = int((time.time() - start) * 1000)
        logger.exception(
            "request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "request_id": request_id,
                "duration_ms": duration_ms,
            },
        )
        raise


# Lambda entry point
handler = Mangum(app)
