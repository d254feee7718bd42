import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from app.config import ConfigurationError
from app.database import MenuStore, SupabaseMenuStore
from app.models import ScrapeAndSaveRequest
from app.places import PlaceLookupError


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: drop any jobs left over from a previous app instance
    from app.jobs import registry
    registry.sweep_stale()
    yield


app = FastAPI(title="Menu Acquisition API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store() -> MenuStore:
    return SupabaseMenuStore()


def error_response(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = {"error": error}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request, exc: RequestValidationError):
    return error_response(400, "Invalid request body", str(exc.errors()[:3]))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/")
def root():
    return {"message": "Menu acquisition backend is running"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/menu")
async def menu_endpoint(placeId: str | None = None):
    """Scrape and parse a place's menu without saving it."""
    if not placeId:
        return error_response(400, "placeId parameter is required")
    try:
        from app.pipeline import fetch_menu
        return await fetch_menu(placeId)
    except PlaceLookupError as e:
        return error_response(e.status_code, "Failed to fetch place details from Google Places API", str(e))
    except ConfigurationError as e:
        return error_response(500, "Internal server error", str(e))
    except Exception as e:
        logger.exception("[api] /menu failed")
        return error_response(500, "Failed to fetch restaurant details", str(e))


@app.post("/restaurant/scrape-and-save")
async def scrape_and_save_endpoint(request: ScrapeAndSaveRequest, store: MenuStore = Depends(get_store)):
    """Scrape a place's website, parse the menu and persist it. Idempotent per placeId."""
    if not request.place_id:
        return error_response(400, "placeId is required")
    try:
        from app.pipeline import scrape_and_save
        return await scrape_and_save(request, store=store)
    except PlaceLookupError as e:
        return error_response(502, "Failed to fetch place details", str(e))
    except Exception as e:
        logger.exception("[api] scrape-and-save failed for %s", request.place_id)
        return error_response(500, "Internal server error", str(e))


@app.post("/restaurant/stream-and-save")
async def stream_and_save_endpoint(request: ScrapeAndSaveRequest, store: MenuStore = Depends(get_store)):
    """Same as scrape-and-save, but streams menu chunks as Server-Sent Events."""
    if not request.place_id or not request.restaurant_name:
        return error_response(400, "placeId and restaurantName are required")

    from app.pipeline import stream_and_save

    async def event_stream():
        async for event in stream_and_save(request, store=store):
            yield event

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
