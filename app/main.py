"""FastAPI main application for the ClarityCompass Risk API."""

import traceback
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.client import PredictionServiceError, build_client
from app.config import Settings, get_settings
from app.history import DEFAULT_USER, SurveyHistoryStore, last14_from_history, utc_timestamp
from app.models import (
    FusedPredictRequest,
    FusedRiskResult,
    ForecastInput,
    ForecastResult,
    HealthResponse,
    HistoryForecastRequest,
    ModelStatusResponse,
    QuickRiskResult,
    StatusMessage,
    SurveyHistoryItem,
    SurveyHistoryResponse,
    SurveyInput,
    SurveySaveFullRequest,
)
from app.risk import LABEL_THRESHOLDS, RiskInputError, get_risk_label

APP_VERSION = "0.1.0"

settings = get_settings()

app = FastAPI(title="ClarityCompass Risk API", version=APP_VERSION)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Survey history lives in memory for the lifetime of the process
history_store = SurveyHistoryStore(max_items=settings.history_max_items)


# Override default exception handlers to return JSON (register specific handlers first)
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler_json(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions and return JSON."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler_json(request: Request, exc: RequestValidationError):
    """Handle request body validation errors and return JSON."""
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_errors(exc), "body": exc.body}
    )


@app.exception_handler(RiskInputError)
async def risk_input_exception_handler(request: Request, exc: RiskInputError):
    """Reject malformed scoring input."""
    print(f"WARNING: rejected {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(PredictionServiceError)
async def prediction_service_exception_handler(request: Request, exc: PredictionServiceError):
    """Report a failing remote prediction backend."""
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "upstream_status": exc.upstream_status}
    )


# Global exception handler to ensure JSON responses for unhandled exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and return JSON."""
    error_detail = str(exc)
    if get_settings().debug:
        error_detail = f"{str(exc)}\n\n{traceback.format_exc()}"

    print(f"ERROR: unhandled {type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {error_detail}",
            "type": type(exc).__name__
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors with their context made JSON safe."""
    errors = []
    for err in exc.errors():
        err = dict(err)
        if 'ctx' in err:
            err['ctx'] = {k: str(v) for k, v in err['ctx'].items()}
        errors.append(err)
    return errors


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """The caller's history key; anonymous callers share the local history."""
    user_id = (x_user_id or '').strip()
    return user_id or DEFAULT_USER


def get_history_store() -> SurveyHistoryStore:
    return history_store


def get_prediction_client(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings)
):
    """Per-request prediction client for the configured backend, closed after the response."""
    client = build_client(settings, authorization=authorization)
    try:
        yield client
    finally:
        client.close()


@app.get("/health", response_model=HealthResponse)
@app.get("/auth/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint to test server connectivity."""
    return HealthResponse(status="ok", version=APP_VERSION)


@app.get("/predict/status", response_model=ModelStatusResponse)
def model_status(client=Depends(get_prediction_client)):
    """Report which engine is scoring and with which constants."""
    return client.status()


@app.post("/predict", response_model=QuickRiskResult)
def predict(survey: SurveyInput, client=Depends(get_prediction_client)):
    """Quick risk score from four daily metrics."""
    result = client.predict(survey)
    print(f"Quick risk: score={result.burnout_score:.1f} label={result.risk_label}")
    return result


@app.post("/predict/fused", response_model=FusedRiskResult)
def predict_fused(request: FusedPredictRequest, client=Depends(get_prediction_client)):
    """Fused score from the stress survey and optional behavioral hours."""
    result = client.predict_fused(request)
    print(
        f"Fused risk: survey={result.survey.survey_risk_0_100:.1f} "
        f"behavior={'none' if result.behavior is None else f'{result.behavior.behavior_risk_0_100:.1f}'} "
        f"final={result.final_score_0_100:.1f}"
    )
    return result


@app.post("/forecast", response_model=ForecastResult)
def forecast(request: ForecastInput, client=Depends(get_prediction_client)):
    """7-day forecast from 14 days of scores and upcoming deadlines."""
    result = client.forecast(request)
    print(f"Forecast: day1={result.pred[0]:.1f} day7={result.pred[-1]:.1f} drivers={result.drivers}")
    return result


@app.post("/forecast/mine", response_model=ForecastResult)
def forecast_from_history(
    request: HistoryForecastRequest,
    user_id: str = Depends(get_user_id),
    store: SurveyHistoryStore = Depends(get_history_store),
    client=Depends(get_prediction_client)
):
    """7-day forecast using the caller's saved quick-risk scores as history."""
    last14 = last14_from_history(store.recent(user_id))
    try:
        forecast_input = ForecastInput(
            last14=last14,
            deadlines_next7=request.deadlines_next7,
            alpha=request.alpha,
            deadline_weight=request.deadline_weight,
        )
    except ValidationError as e:
        raise RiskInputError(f"Saved history cannot be forecast: {e.error_count()} invalid values") from e
    return client.forecast(forecast_input)


@app.post("/survey/save", response_model=StatusMessage)
def save_survey(
    survey: SurveyInput,
    user_id: str = Depends(get_user_id),
    store: SurveyHistoryStore = Depends(get_history_store),
    client=Depends(get_prediction_client)
):
    """Score a survey and record it in the caller's history."""
    result = client.predict(survey)
    store.add(user_id, SurveyHistoryItem(timestamp=utc_timestamp(), input=survey, result=result))
    return StatusMessage(status="ok", message="Risk assessment saved successfully.")


@app.post("/survey/save-full", response_model=StatusMessage)
def save_survey_full(
    request: SurveySaveFullRequest,
    user_id: str = Depends(get_user_id),
    store: SurveyHistoryStore = Depends(get_history_store),
    settings: Settings = Depends(get_settings)
):
    """Record a survey together with results the caller already computed."""
    if request.result is not None:
        thresholds = LABEL_THRESHOLDS[settings.risk_label_scheme]
        expected = get_risk_label(request.result.burnout_score, thresholds)
        if request.result.risk_label != expected:
            raise RiskInputError(
                f"risk_label {request.result.risk_label} does not match burnout_score "
                f"{request.result.burnout_score:g} ({expected} on the {thresholds.name} table)"
            )
    item = SurveyHistoryItem(
        timestamp=request.timestamp or utc_timestamp(),
        input=request.input,
        result=request.result,
        fused=request.fused,
    )
    store.add(user_id, item)
    return StatusMessage(status="ok", message="Risk assessment saved successfully.")


@app.get("/survey/history", response_model=SurveyHistoryResponse)
def survey_history(
    limit: int = Query(20, ge=1, le=500),
    user_id: str = Depends(get_user_id),
    store: SurveyHistoryStore = Depends(get_history_store)
):
    """The caller's most recent saved surveys, oldest first."""
    return SurveyHistoryResponse(items=store.recent(user_id, limit))


@app.delete("/survey/history", response_model=StatusMessage)
def clear_survey_history(
    user_id: str = Depends(get_user_id),
    store: SurveyHistoryStore = Depends(get_history_store)
):
    """Forget the caller's saved surveys."""
    removed = store.clear(user_id)
    return StatusMessage(status="ok", message=f"Removed {removed} saved assessments.")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
