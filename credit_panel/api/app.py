"""
FastAPI application exposing coupon validation and the reseller ranking.

Business-rule rejections are 200 responses carrying ``valid: false``;
malformed input is a 400; store failures are a 500 with a generic message.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from credit_panel.config.loader import PanelConfig, load_optional_config
from credit_panel.config.settings import get_settings
from credit_panel.core.coupons import validate_coupon
from credit_panel.core.errors import RankingUnavailable, UpstreamFailure, ValidationError
from credit_panel.core.ranking import build_ranking
from credit_panel.storage.repository import RecordStore, get_store
from .schemas import (
    CouponAccepted,
    CouponRejected,
    CouponRequest,
    RankingResponse,
    RankingRow,
)

logger = logging.getLogger(__name__)


def create_app(store: Optional[RecordStore] = None, config: Optional[PanelConfig] = None) -> FastAPI:
    """Build the API app.

    Args:
        store: Record store; defaults to the one configured by the environment
        config: Panel configuration; defaults to CREDIT_PANEL_CONFIG or built-in defaults

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()
    app = FastAPI(title=settings.APP_NAME)
    app.state.store = store if store is not None else get_store(settings)
    app.state.config = config if config is not None else load_optional_config(settings.CONFIG_PATH)

    # Pre-flight requests are answered here before any handler runs
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"valid": False, "error": "Invalid request body"})

    @app.exception_handler(ValidationError)
    async def invalid_input(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"valid": False, "error": str(exc)})

    @app.get("/health")
    def health():
        return {"status": "ok", "app": settings.APP_NAME}

    @app.post("/validate-coupon")
    def validate_coupon_endpoint(body: CouponRequest, request: Request):
        panel_config: PanelConfig = request.app.state.config
        try:
            result = validate_coupon(
                request.app.state.store,
                body.code,
                body.amount,
                minimum_purchase=panel_config.coupons.minimum_purchase
            )
        except UpstreamFailure as e:
            logger.error("Coupon validation failed: %s", e)
            return JSONResponse(
                status_code=500,
                content={"valid": False, "error": "Unable to validate coupon"}
            )
        except Exception:
            logger.exception("Unexpected error validating coupon")
            return JSONResponse(
                status_code=500,
                content={"valid": False, "error": "Unable to validate coupon"}
            )

        if not result.valid:
            status_code = 400 if result.reason.is_input_error else 200
            return JSONResponse(
                status_code=status_code,
                content=CouponRejected(error=result.message).model_dump()
            )
        return CouponAccepted.from_validation(result).model_dump()

    @app.api_route("/reseller-ranking", methods=["GET", "POST"])
    def reseller_ranking(request: Request):
        ranking_config = request.app.state.config.ranking
        try:
            entries = build_ranking(
                request.app.state.store,
                min_credits=ranking_config.min_credits,
                limit=ranking_config.limit,
                page_size=ranking_config.page_size,
                identity_page_size=ranking_config.identity_page_size
            )
        except RankingUnavailable:
            return JSONResponse(status_code=500, content={"error": "Ranking unavailable"})
        return RankingResponse(ranking=[RankingRow.from_entry(entry) for entry in entries]).model_dump()

    return app
