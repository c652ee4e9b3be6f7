from __future__ import annotations

import logging
import os

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request
from starlette.middleware.sessions import SessionMiddleware

from .auth.dependencies import require_buyer, require_property_owner, require_user
from .auth.models import LoginRequest, PreferenceProfile
from .auth.users import UserDirectory
from .favorites.store import DuplicateFavoriteError, FavoriteNotFoundError, FavoriteStore
from .geo.distance import CoordinateValidationError
from .listings.models import Listing, ListingCreate, ListingType, PropertyType
from .listings.store import ListingNotFoundError, ListingQuery, ListingStore
from .recommendations.engine import RecommendationEngine, to_items
from .recommendations.models import (
    BuyerDashboard,
    FavoriteOut,
    FavoriteRequest,
    RecommendationResponse,
    UpdatePreferencesRequest,
)
from .recommendations.preferences import PreferenceUpdateJob, PreferenceUpdater
from .scoring.models import CoordinateRequest, LocationScoreResult
from .scoring.service import LocationScoreService
from .services import (
    get_favorite_store,
    get_listing_store,
    get_preference_updater,
    get_recommendation_engine,
    get_score_service,
    get_user_directory,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Brokerage Listings API", version="1.0.0")
app.add_middleware(
    SessionMiddleware,
    secret_key=os.environ.get("SESSION_SECRET", "brokerage-secret-change-in-production"),
)

RECOMMENDATION_TYPES = ("personalized", "nearby", "highscore", "trending", "similar", "popular")


def _get_listing_or_404(store: ListingStore, listing_id: str) -> Listing:
    try:
        return store.get(listing_id)
    except ListingNotFoundError:
        raise HTTPException(status_code=404, detail="Listing not found") from None


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metadata")
def metadata(store: ListingStore = Depends(get_listing_store)) -> dict:
    return {
        "cities": store.cities(),
        "property_types": [t.value for t in PropertyType],
        "listing_types": [t.value for t in ListingType],
    }


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/auth/login")
def login(
    body: LoginRequest,
    request: Request,
    users: UserDirectory = Depends(get_user_directory),
) -> dict:
    user = users.authenticate(body.username, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    request.session["user"] = user
    return {"status": "ok", "user": user}


@app.post("/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"status": "logged_out"}


@app.get("/auth/me")
def auth_me(user: dict = Depends(require_user)) -> dict:
    return user


@app.get("/me/preferences", response_model=PreferenceProfile)
def my_preferences(
    user: dict = Depends(require_user),
    users: UserDirectory = Depends(get_user_directory),
) -> PreferenceProfile:
    return users.get_preferences(user["username"])


# ── Listings ─────────────────────────────────────────────────────────────


@app.get("/listings", response_model=list[Listing])
def list_listings(
    city: str | None = None,
    property_type: PropertyType | None = None,
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    store: ListingStore = Depends(get_listing_store),
) -> list[Listing]:
    query = ListingQuery(
        city_contains=city,
        property_types=[property_type.value] if property_type else [],
        price_min=min_price,
        price_max=max_price,
        sort_by=("featured", "created_at"),
        limit=limit,
    )
    return store.find(query)


@app.post("/listings", response_model=Listing, status_code=201)
async def create_listing(
    body: ListingCreate,
    user: dict = Depends(require_property_owner),
    store: ListingStore = Depends(get_listing_store),
    scorer: LocationScoreService = Depends(get_score_service),
) -> Listing:
    listing = Listing(id=store.new_id(), owner=user["username"], **body.model_dump())
    if listing.has_coordinates:
        # Scoring is best-effort; the listing is saved either way
        try:
            listing.location_scores = await scorer.calculate_all_scores(listing.latitude, listing.longitude)
        except Exception:
            logger.exception("Scoring failed for new listing %s, saving without scores", listing.id)
    return store.add(listing)


@app.get("/listings/{listing_id}", response_model=Listing)
def get_listing(listing_id: str, store: ListingStore = Depends(get_listing_store)) -> Listing:
    _get_listing_or_404(store, listing_id)
    return store.record_view(listing_id)


@app.post("/listings/{listing_id}/scores", response_model=LocationScoreResult)
async def recalculate_scores(
    listing_id: str,
    user: dict = Depends(require_user),
    store: ListingStore = Depends(get_listing_store),
    scorer: LocationScoreService = Depends(get_score_service),
) -> LocationScoreResult:
    listing = _get_listing_or_404(store, listing_id)
    if user["role"] != "broker" and listing.owner != user["username"]:
        raise HTTPException(status_code=403, detail="Only the owner or a broker can rescore a listing")
    if not listing.has_coordinates:
        raise HTTPException(status_code=400, detail="Listing has no coordinates")

    try:
        result = await scorer.calculate_all_scores(listing.latitude, listing.longitude)
    except CoordinateValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return store.save_scores(listing_id, result).location_scores


# ── Scoring ──────────────────────────────────────────────────────────────


@app.post("/scores/calculate", response_model=LocationScoreResult)
async def calculate_scores(
    body: CoordinateRequest,
    scorer: LocationScoreService = Depends(get_score_service),
) -> LocationScoreResult:
    try:
        return await scorer.calculate_all_scores(body.latitude, body.longitude)
    except CoordinateValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# ── Favorites ────────────────────────────────────────────────────────────


@app.post("/favorites", status_code=201)
def add_favorite(
    body: FavoriteRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_buyer),
    store: ListingStore = Depends(get_listing_store),
    favorites: FavoriteStore = Depends(get_favorite_store),
    updater: PreferenceUpdater = Depends(get_preference_updater),
) -> dict:
    listing = _get_listing_or_404(store, body.listing_id)
    try:
        fav = favorites.add(
            user["username"],
            listing.id,
            notes=body.notes,
            priority=body.priority,
            interest_level=body.interest_level,
        )
    except DuplicateFavoriteError:
        raise HTTPException(status_code=409, detail="Listing already in favorites") from None

    job = updater.enqueue(user["username"], listing.id)
    background_tasks.add_task(updater.run, job.id)
    return {"favorite": fav, "preference_job": job.id}


@app.get("/favorites", response_model=list[FavoriteOut])
def list_favorites(
    user: dict = Depends(require_buyer),
    store: ListingStore = Depends(get_listing_store),
    favorites: FavoriteStore = Depends(get_favorite_store),
) -> list[FavoriteOut]:
    out = []
    for fav in favorites.list_for_user(user["username"]):
        try:
            listing = store.get(fav.listing_id)
        except ListingNotFoundError:
            listing = None
        out.append(FavoriteOut(favorite=fav, listing=listing))
    return out


@app.delete("/favorites/{listing_id}")
def remove_favorite(
    listing_id: str,
    user: dict = Depends(require_buyer),
    favorites: FavoriteStore = Depends(get_favorite_store),
) -> dict:
    try:
        favorites.remove(user["username"], listing_id)
    except FavoriteNotFoundError:
        raise HTTPException(status_code=404, detail="Favorite not found") from None
    return {"status": "removed"}


# ── Recommendations ──────────────────────────────────────────────────────


@app.get("/recommendations", response_model=RecommendationResponse)
def recommendations(
    type: str = Query(default="personalized"),
    limit: int = Query(default=12, ge=1, le=50),
    user: dict = Depends(require_user),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> RecommendationResponse:
    username = user["username"]
    if type == "personalized":
        candidates = engine.get_buyer_recommendations(username, limit)
    elif type == "nearby":
        candidates = engine.get_nearby_recommendations(username, limit=limit)
    elif type == "highscore":
        candidates = engine.get_high_location_score_listings(limit)
    elif type == "trending":
        candidates = engine.get_trending_listings(limit)
    elif type == "similar":
        candidates = engine.get_similar_to_listings(username, limit)
    elif type == "popular":
        candidates = engine.get_popular_listings(limit)
    else:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown recommendation type, expected one of {', '.join(RECOMMENDATION_TYPES)}",
        )
    items = to_items(candidates)
    return RecommendationResponse(type=type, recommendations=items, count=len(items))


@app.get("/recommendations/matching", response_model=RecommendationResponse)
def matching_recommendations(
    limit: int = Query(default=6, ge=1, le=50),
    user: dict = Depends(require_user),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> RecommendationResponse:
    items = to_items(engine.get_personalized_recommendations(user["username"], limit))
    return RecommendationResponse(type="matching", recommendations=items, count=len(items))


@app.get("/recommendations/location/{city}", response_model=RecommendationResponse)
def location_recommendations(
    city: str,
    limit: int = Query(default=6, ge=1, le=50),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> RecommendationResponse:
    items = to_items(engine.get_location_based_recommendations(city, limit))
    return RecommendationResponse(type="location", recommendations=items, count=len(items))


@app.post("/recommendations/update-preferences", response_model=PreferenceUpdateJob)
def update_preferences(
    body: UpdatePreferencesRequest,
    user: dict = Depends(require_user),
    updater: PreferenceUpdater = Depends(get_preference_updater),
) -> PreferenceUpdateJob:
    return updater.update(user["username"], body.listing_id)


@app.get("/recommendations/jobs/{job_id}", response_model=PreferenceUpdateJob)
def preference_job(
    job_id: str,
    user: dict = Depends(require_user),
    updater: PreferenceUpdater = Depends(get_preference_updater),
) -> PreferenceUpdateJob:
    job = updater.get_job(job_id)
    if job is None or job.user != user["username"]:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


# ── Buyer dashboard ──────────────────────────────────────────────────────


@app.get("/buyers/dashboard", response_model=BuyerDashboard)
def buyer_dashboard(
    user: dict = Depends(require_buyer),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> BuyerDashboard:
    return engine.get_buyer_dashboard(user["username"])
