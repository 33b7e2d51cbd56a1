# api/main.py
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, TypeAdapter

from availability.checker import AvailabilityChecker
from availability.models import LocationDescriptor, SourceConfig
from availability.utils import utc_now

from .rate_limit import CHECK_RATE_LIMIT, limiter, register_rate_limit

load_dotenv()
API_PORT = int(os.getenv("API_PORT", "3000"))
SOURCES_FILE = os.getenv("SOURCES_FILE")

logger = logging.getLogger("api")
logger.setLevel(logging.INFO)

_checker = None


def load_sources(path):
    """
    Read already-materialized source records from a JSON array file.

    Returns an empty list when no path is configured. Records are validated
    as SourceConfig; an invalid file fails loudly at startup.
    """
    if not path:
        logger.warning("SOURCES_FILE not set, starting with no sources")
        return []
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return TypeAdapter(List[SourceConfig]).validate_python(data)


def get_checker():
    """Return the process-wide AvailabilityChecker, building it on first use."""
    global _checker
    if _checker is None:
        _checker = AvailabilityChecker(load_sources(SOURCES_FILE))
        logger.info(f"Loaded {len(_checker.list_sources())} sources")
    return _checker


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _checker is not None:
        await _checker.close()


app = FastAPI(title="Book Availability API", version="1.1.0", lifespan=lifespan)

register_rate_limit(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


class CheckAvailabilityRequest(BaseModel):
    places: Optional[List[LocationDescriptor]] = None
    isbn: Optional[str] = None


@app.post("/api/check-availability")
@limiter.limit(CHECK_RATE_LIMIT)
async def check_availability(request: Request, payload: CheckAvailabilityRequest):
    """
    Check an ISBN at every submitted place.

    Args:
        request (Request): FastAPI request object (required for rate limiting)
        payload (CheckAvailabilityRequest): places from the maps front end
            and the ISBN to look for

    Returns:
        dict: BatchReport with one result per place, in submission order

    Raises:
        HTTPException: 400 if places or isbn is missing
    """
    if not payload.places or not payload.isbn:
        raise HTTPException(status_code=400, detail="Places and ISBN are required")

    logger.info(
        f"Checking availability for ISBN {payload.isbn} at {len(payload.places)} locations"
    )
    report = await get_checker().check_availability_batch(payload.places, payload.isbn)
    return report.model_dump(mode="json")


@app.get("/api/adapters")
async def list_adapters():
    names = get_checker().list_sources()
    return {"adapters": names, "count": len(names)}


@app.get("/api/health")
async def health():
    return {
        "status": "OK",
        "timestamp": utc_now().isoformat(),
        "adapters_loaded": len(get_checker().list_sources()),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=API_PORT)
