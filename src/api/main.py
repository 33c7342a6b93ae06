"""FastAPI main application."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from src.api.dependencies import Services, build_services, get_services, verify_api_key
from src.config import Config, config
from src.errors import (
    CacheWriteError,
    CouponSearchError,
    ImportValidationError,
    InvalidRequestError,
    QuotaExceededError,
)
from src.jobs.importer import import_coupons
from src.logging_conf import setup_logging
from src.parse.models import SearchRequest

logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
CORS_HEADERS = {"Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS)}
if "*" in config.CORS_ALLOW_ORIGINS:
    CORS_HEADERS["Access-Control-Allow-Origin"] = "*"

app = FastAPI(title="Coupon Search API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=CORS_ALLOW_HEADERS,
)


@app.on_event("startup")
async def startup():
    """Initialize on startup."""
    setup_logging()
    if getattr(app.state, "services", None) is None:
        Config.validate()
        app.state.services = build_services()
    if not await app.state.services.cache_store.test_connection():
        logger.warning("Supabase connection test failed, but continuing...")


@app.on_event("shutdown")
async def shutdown():
    services: Optional[Services] = getattr(app.state, "services", None)
    if services is not None:
        await services.aclose()


def error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "coupons": []},
    )


def parse_search_request(body: Any) -> SearchRequest:
    """Validate the search body; a missing domain is reported by name."""
    if not isinstance(body, dict) or not body.get("website_domain"):
        raise InvalidRequestError("website_domain is required")
    try:
        return SearchRequest.model_validate(body)
    except ValidationError as e:
        if any("website_domain" in err["loc"] for err in e.errors()):
            raise InvalidRequestError("website_domain is required") from e
        raise InvalidRequestError("Invalid request body", detail=str(e)) from e


async def read_json(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


@app.get("/health")
async def health(services: Services = Depends(get_services)):
    """Health check endpoint (no auth required)."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "provider": services.provider.name.value,
        "supabase_connected": await services.cache_store.test_connection(),
    }


@app.options("/search-coupons")
async def search_coupons_preflight():
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@app.post("/search-coupons")
async def search_coupons(
    request: Request,
    background_tasks: BackgroundTasks,
    authorization: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
):
    """
    Search coupons for a website domain.
    from_cache=true only reads the cache; otherwise runs a live provider search
    within the caller's daily quota.
    """
    try:
        user = await services.identity.resolve(authorization)
        search_request = parse_search_request(await read_json(request))
        result = await services.orchestrator.search(user, search_request, background_tasks)
        return JSONResponse(content=result.model_dump(mode="json"), headers=CORS_HEADERS)

    except QuotaExceededError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"error": e.message, "message": e.detail},
            headers=CORS_HEADERS,
        )
    except CouponSearchError as e:
        if e.status_code < 500:
            logger.warning(f"search-coupons rejected: {e}")
        else:
            logger.error(f"Error in search-coupons: {e}")
        return error_response(e.status_code, str(e))
    except Exception as e:
        logger.error(f"Unexpected error in search-coupons: {e}", exc_info=True)
        return error_response(500, "Internal server error")


@app.post("/create-coupons", status_code=201)
async def create_coupons(
    request: Request,
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
):
    """Bulk upsert of externally supplied coupons (48h freshness)."""
    payload = await read_json(request)
    try:
        results = await import_coupons(payload, services.cache_store)
    except ImportValidationError as e:
        return JSONResponse(status_code=400, content={"error": e.message})
    except CacheWriteError as e:
        return JSONResponse(
            status_code=502,
            content={"error": "Database insert failed", "detail": e.detail},
        )
    except Exception as e:
        logger.error(f"Unexpected error in create-coupons: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(e)},
        )
    return JSONResponse(status_code=201, content={"results": results})


@app.api_route("/create-coupons", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def create_coupons_method_not_allowed():
    return JSONResponse(status_code=405, content={"error": "Only POST allowed"})


if __name__ == "__main__":
    import uvicorn
    Config.validate()
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
