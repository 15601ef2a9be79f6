"""HTTP entry point for the prayer schedule service."""
from __future__ import annotations

import logging
import sys
from datetime import date
from typing import Optional

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from context import RequestContext
from errors import InvalidInput, PrayerServiceError
from geocoding import NominatimLocationResolver
from images import ImagePassthrough
from prayer_times import AlAdhanScheduleProvider
from resolver import PrayerScheduleResolver
from settings import ServiceConfig, load_config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOGGER = logging.getLogger(__name__)

OP_SCHEDULE_BY_COORDINATE = "shalat-schedule-by-coordinate"
OP_SCHEDULE_BY_LOCATION = "shalat-schedule-by-location"
OP_IMAGE = "image"


def configure_logging(level: str) -> None:
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)


def build_resolver(config: ServiceConfig) -> PrayerScheduleResolver:
    provider = AlAdhanScheduleProvider(base_url=config.aladhan_base_url, timeout=config.request_timeout)
    locations = NominatimLocationResolver(
        base_url=config.nominatim_base_url,
        user_agent=config.user_agent,
        timeout=config.request_timeout,
    )
    return PrayerScheduleResolver(provider, locations, config=config)


def create_app(
    config: Optional[ServiceConfig] = None,
    resolver: Optional[PrayerScheduleResolver] = None,
    images: Optional[ImagePassthrough] = None,
) -> FastAPI:
    config = config or load_config()
    resolver = resolver or build_resolver(config)
    images = images or ImagePassthrough(config.image_allowed_hosts, timeout=config.request_timeout)

    app = FastAPI(title="Muslim Board API")

    @app.exception_handler(PrayerServiceError)
    async def handle_service_error(request: Request, exc: PrayerServiceError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"status_code": exc.status_code, "message": exc.public_message},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.error("Unhandled error for %s", request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"status_code": 500, "message": "Internal server error"})

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/muslimboard-api")
    def muslimboard_api(
        op: str = Query(""),
        method: str = Query(""),
        latitude: str = Query(""),
        longitude: str = Query(""),
        province: str = Query(""),
        city: str = Query(""),
        month: str = Query(""),
        year: str = Query(""),
        url: str = Query(""),
    ):
        ctx = RequestContext(deadline_seconds=config.request_deadline)
        today = date.today()
        month = month or str(today.month)
        year = year or str(today.year)
        LOGGER.debug("Handling op=%s", op)

        if op == OP_SCHEDULE_BY_COORDINATE:
            result = resolver.resolve_by_coordinate(method, latitude, longitude, month, year, ctx)
            return {"status_code": 200, "data": result.to_dict()}
        if op == OP_SCHEDULE_BY_LOCATION:
            result = resolver.resolve_by_location(method, province, city, month, year, ctx)
            return {"status_code": 200, "data": result.to_dict()}
        if op == OP_IMAGE:
            content_type, body = images.fetch(url, ctx)
            return StreamingResponse(body, media_type=content_type)
        raise InvalidInput(f"Unknown op '{op}'")

    return app


def main() -> int:
    config = load_config()
    configure_logging(config.log_level)
    LOGGER.info("listening to %s:%s", config.host, config.port)
    uvicorn.run(create_app(config), host=config.host, port=config.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
