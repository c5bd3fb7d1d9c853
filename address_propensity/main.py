"""FastAPI application serving ranked propensity scores by zip code."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .config import Settings
from .database import get_db, init_db
from .errors import FieldValidationError, RepositoryError
from .logging_config import configure_logfire
from .repository import PropertyPropensityScoreRepository
from .schemas import Address, ZipOrPostalCode

MAX_SEARCH_LIMIT = 1000

logger = logging.getLogger(__name__)

settings = Settings.from_env()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db(getattr(app.state, "engine", None))
    yield


app = FastAPI(
    title="Address Propensity API",
    description="Ranked home-equity propensity scores by zip code",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure Logfire for observability (after app creation)
configure_logfire(app, settings.logfire_token)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


# =============================================================================
# Response models
# =============================================================================


class AddressResponse(BaseModel):
    """Postal address of a scored property."""

    street_number: str
    street_pre_direction: str | None = None
    street_name: str
    street_suffix: str
    street_post_direction: str | None = None
    secondary_designator: str | None = None
    secondary_number: str | None = None
    city: str
    state_or_region: str
    zip_or_postal_code: str
    country_code: str
    formatted: str

    @classmethod
    def from_address(cls, address: Address) -> "AddressResponse":
        line = address.address_line
        secondary = address.secondary_address_line
        return cls(
            street_number=line.street_number,
            street_pre_direction=line.street_direction.prefix,
            street_name=line.street_name,
            street_suffix=line.street_suffix,
            street_post_direction=line.street_direction.suffix,
            secondary_designator=secondary.designator if secondary else None,
            secondary_number=secondary.number if secondary else None,
            city=address.city,
            state_or_region=address.state_or_region,
            zip_or_postal_code=str(address.zip_or_postal_code),
            country_code=address.locale.code,
            formatted=str(address),
        )


class PropensitySearchItem(BaseModel):
    """One ranked score; address is omitted when no property is on file."""

    parcel_number: str
    score: int
    address: AddressResponse | None = None


# =============================================================================
# Routes
# =============================================================================


@app.get("/")
async def root():
    """Service status."""
    return {"status": "ok", "service": "Address Propensity API"}


@app.get("/health_check")
async def health_check():
    return Response(status_code=200)


@app.get(
    "/propensity",
    response_model=list[PropensitySearchItem],
    response_model_exclude_none=True,
)
def propensity_search(
    zip_code: str | None = Query(default=None),
    zip_alias: str | None = Query(default=None, alias="zip"),
    zipcode_alias: str | None = Query(default=None, alias="zipcode"),
    limit: int = Query(default=settings.search_limit_default, gt=0, le=MAX_SEARCH_LIMIT),
    db: Session = Depends(get_db),
):
    """Highest propensity scores in a zip code, best first."""
    raw_zip = zip_code or zip_alias or zipcode_alias
    if raw_zip is None:
        raise HTTPException(status_code=400, detail="zip_code is required")
    try:
        zip_or_postal_code = ZipOrPostalCode.parse(raw_zip)
    except FieldValidationError as e:
        raise HTTPException(status_code=400, detail=f"User supplied invalid zip code: {e}")

    try:
        ranked = PropertyPropensityScoreRepository(db).find_ranked(zip_or_postal_code, limit)
    except RepositoryError as e:
        logger.exception(f"failed to search repository for top {limit} propensity scores: {e}")
        raise HTTPException(status_code=500, detail="Failed to search propensity scores")

    logger.info(f"Returning {len(ranked)} propensity scores for {zip_or_postal_code}")
    return [
        PropensitySearchItem(
            parcel_number=str(score.apn),
            score=int(score.score),
            address=AddressResponse.from_address(address) if address is not None else None,
        )
        for score, address in ranked
    ]
