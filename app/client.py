"""Prediction clients: the in-process engine and an HTTP passthrough to a remote backend."""

from typing import Any, Dict, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from app.config import Settings
from app.forecast import forecast_risk
from app.models import (
    FusedPredictRequest,
    FusedRiskResult,
    ForecastInput,
    ForecastResult,
    ModelStatusResponse,
    QuickRiskResult,
    SurveyInput,
)
from app.risk import (
    BLEND_WEIGHTS,
    LABEL_THRESHOLDS,
    QUICK_RISK_FEATURES,
    fuse_risk,
    score_quick_risk,
)

ModelT = TypeVar('ModelT', bound=BaseModel)


class PredictionServiceError(Exception):
    """Raised when the remote prediction backend cannot give a usable answer."""

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class LocalPredictionClient:
    """Answers predictions with the built-in formulas."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.thresholds = LABEL_THRESHOLDS[settings.risk_label_scheme]
        self.weights = BLEND_WEIGHTS[settings.fused_blend_scheme]

    def close(self) -> None:
        pass

    def status(self) -> ModelStatusResponse:
        return ModelStatusResponse(
            using='Linear formula v1',
            model_loaded=True,
            scaler_loaded=False,
            features=list(QUICK_RISK_FEATURES),
            artifact_flags={'dass21_model': True, 'behavior_model': True},
            label_scheme=self.thresholds.name,
            fused_blend={'survey': self.weights.survey, 'behavior': self.weights.behavior},
            driver_mode=self.settings.fused_driver_mode,
        )

    def predict(self, survey: SurveyInput) -> QuickRiskResult:
        return score_quick_risk(survey, self.thresholds)

    def predict_fused(self, request: FusedPredictRequest) -> FusedRiskResult:
        return fuse_risk(
            request.s_answers,
            request.behavior,
            weights=self.weights,
            driver_mode=self.settings.fused_driver_mode,
        )

    def forecast(self, request: ForecastInput) -> ForecastResult:
        return forecast_risk(
            request.last14,
            request.deadlines_next7,
            alpha=request.alpha,
            deadline_weight=request.deadline_weight,
        )


class RemotePredictionClient:
    """
    Forwards validated requests to an external prediction backend.

    The caller's Authorization header, if any, is passed through unchanged.
    Upstream answers are validated against the same response models the local
    engine produces.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        authorization: Optional[str] = None,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.authorization = authorization
        # Only a session created here is closed by close()
        self._owns_session = session is None
        self.session = session or requests.Session()

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def _headers(self) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        if self.authorization:
            headers['Authorization'] = self.authorization
        return headers

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(
                method, url, headers=self._headers(), json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            print(f"ERROR: {method} {url} failed: {e}")
            raise PredictionServiceError(f"Prediction backend unreachable: {e}") from e

        if r.status_code >= 300:
            print(f"ERROR: {method} {url} failed: {r.status_code} {r.text[:200]}")
            raise PredictionServiceError(
                f"Prediction backend returned HTTP {r.status_code} for {path}",
                upstream_status=r.status_code,
            )

        try:
            return r.json()
        except ValueError as e:
            raise PredictionServiceError(f"Prediction backend sent invalid JSON for {path}") from e

    def _parse(self, model: Type[ModelT], data: Any, path: str) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise PredictionServiceError(
                f"Prediction backend sent an unexpected payload for {path}: {e.error_count()} errors"
            ) from e

    def status(self) -> ModelStatusResponse:
        return self._parse(ModelStatusResponse, self._request('GET', '/predict/status'), '/predict/status')

    def predict(self, survey: SurveyInput) -> QuickRiskResult:
        data = self._request('POST', '/predict', survey.model_dump())
        return self._parse(QuickRiskResult, data, '/predict')

    def predict_fused(self, request: FusedPredictRequest) -> FusedRiskResult:
        data = self._request('POST', '/predict/fused', request.model_dump(exclude_none=True))
        return self._parse(FusedRiskResult, data, '/predict/fused')

    def forecast(self, request: ForecastInput) -> ForecastResult:
        data = self._request('POST', '/forecast', request.model_dump(exclude_none=True))
        return self._parse(ForecastResult, data, '/forecast')


def build_client(
    settings: Settings,
    authorization: Optional[str] = None,
    session: Optional[requests.Session] = None
):
    """Pick the prediction client for the configured backend. Callers close() it when done."""
    if settings.prediction_backend == 'remote':
        return RemotePredictionClient(
            settings.prediction_api_base_url,
            timeout=settings.prediction_api_timeout,
            authorization=authorization,
            session=session,
        )
    return LocalPredictionClient(settings)
