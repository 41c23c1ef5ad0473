"""FastAPI server for the land claim engine.

Provides an HTTP API for walking claims (start, stream fixes, commit) and for
querying and managing committed territories.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from ..config import ClaimConfig
from ..engine.claim_session import ClaimSession
from ..engine.validator import RejectionReason
from ..errors import InvariantViolation, StorageError, TerritoryNotFound
from ..models.fix import Fix
from ..models.geo_point import RawPoint
from ..stores import InMemoryTerritoryStore, JsonFileTerritoryStore, TerritoryStore
from ..utils.claim_log import install_claim_log
from .schemas.requests import RenameTerritoryRequest, StartClaimRequest, SubmitFixesRequest
from .schemas.responses import (
    ClaimStateResponse,
    CommitResponse,
    FixResultResponse,
    StartClaimResponse,
    SubmitFixesResponse,
    TerritoryResponse,
)
from .session import (
    ActiveClaimError,
    ClaimSessionManager,
    serialize_commit,
    serialize_state,
    serialize_territory,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

STORE_PATH_ENV = "LANDCLAIM_STORE_PATH"


def _default_store() -> TerritoryStore:
    """JSON file store if LANDCLAIM_STORE_PATH is set, otherwise in-memory."""
    path = os.environ.get(STORE_PATH_ENV)
    if path:
        logger.info(f"Persisting territories to {path}")
        return JsonFileTerritoryStore(path)
    logger.info("Using in-memory territory store")
    return InMemoryTerritoryStore()


def create_app(store: TerritoryStore | None = None, config: ClaimConfig | None = None) -> FastAPI:
    """Build the API application.

    Args:
        store: Territory store (default: from LANDCLAIM_STORE_PATH)
        config: Engine thresholds (default: ClaimConfig.from_env())

    Returns:
        Configured FastAPI app
    """
    config = config or ClaimConfig.from_env()
    store = store if store is not None else _default_store()
    sessions = ClaimSessionManager(store, config)
    claim_log = install_claim_log()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup/shutdown."""
        logger.info("Land claim server starting...")
        yield
        logger.info("Land claim server shutting down...")
        await sessions.cleanup_all()

    app = FastAPI(
        title="Land Claim API",
        description="Walk a loop, claim the land inside it",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.sessions = sessions
    app.state.store = store
    app.state.claim_log = claim_log

    # Enable CORS for the game client
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


def _session_or_404(request: Request, claim_id: str) -> ClaimSession:
    session = request.app.state.sessions.get(claim_id)
    if not session:
        raise HTTPException(status_code=404, detail="Claim not found")
    return session


async def _state(session: ClaimSession) -> ClaimStateResponse:
    try:
        collision = await session.collision_status()
    except StorageError as e:
        logger.error(f"Claim {session.claim_attempt_id}: proximity query failed: {e}")
        raise HTTPException(status_code=503, detail="Territory store unavailable")
    return serialize_state(session, collision)


def _register_routes(app: FastAPI) -> None:
    # ============================================
    # CLAIM ENDPOINTS
    # ============================================

    @app.get("/api")
    async def api_root(request: Request):
        """API root endpoint - server health check."""
        return {
            "service": "Land Claim",
            "status": "operational",
            "activeClaims": len(request.app.state.sessions.sessions),
        }

    @app.post("/api/claims", response_model=StartClaimResponse)
    async def start_claim(request: Request, body: StartClaimRequest):
        """Start tracking a new claim walk.

        Example:
            POST /api/claims
            {"ownerId": "player-1"}
        """
        try:
            session = await request.app.state.sessions.create_session(
                body.ownerId, body.claimAttemptId
            )
        except ActiveClaimError as e:
            raise HTTPException(status_code=409, detail=str(e))

        return StartClaimResponse(
            claimId=session.claim_attempt_id,
            ownerId=session.owner_id,
            state=await _state(session),
        )

    @app.post("/api/claims/{claim_id}/fixes", response_model=SubmitFixesResponse)
    async def submit_fixes(request: Request, claim_id: str, body: SubmitFixesRequest):
        """Feed location fixes to a claim, in device order.

        Example:
            POST /api/claims/<id>/fixes
            {"fixes": [{"latitude": 31.23, "longitude": 121.47,
                        "timestamp": "2026-05-01T08:00:00+08:00", "accuracy": 8}]}
        """
        session = _session_or_404(request, claim_id)
        try:
            fixes = [
                Fix.at(f.latitude, f.longitude, f.timestamp, f.accuracy, f.speed)
                for f in body.fixes
            ]
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

        try:
            results = await session.ingest_many(fixes)
        except InvariantViolation as e:
            raise HTTPException(status_code=409, detail=str(e))
        return SubmitFixesResponse(
            results=[
                FixResultResponse(
                    disposition=r.disposition.value, version=r.version, message=r.message
                )
                for r in results
            ],
            state=await _state(session),
        )

    @app.get("/api/claims/{claim_id}/state", response_model=ClaimStateResponse)
    async def get_claim_state(request: Request, claim_id: str):
        """Observable state of a claim, with the path in both datums."""
        return await _state(_session_or_404(request, claim_id))

    @app.post("/api/claims/{claim_id}/commit", response_model=CommitResponse)
    async def commit_claim(request: Request, claim_id: str):
        """Validate a closed claim and store it as a territory.

        Returns 422 with the rejection reason when the loop is not acceptable
        and 503 when the store failed; the latter may be retried as is. A
        claim that is already committed answers with its territory again.
        """
        session = _session_or_404(request, claim_id)
        try:
            result = await session.commit()
        except InvariantViolation:
            result = None
        if result is None:
            raise HTTPException(
                status_code=409,
                detail=f"Claim is {session.tracking_state.value}, only a closed loop can be committed",
            )

        response = serialize_commit(result)
        if result.accepted:
            return response
        status_code = 503 if result.reason is RejectionReason.STORAGE_FAILURE else 422
        raise HTTPException(status_code=status_code, detail=response.model_dump())

    @app.delete("/api/claims/{claim_id}")
    async def discard_claim(request: Request, claim_id: str):
        """Discard a claim and end its session."""
        if await request.app.state.sessions.delete(claim_id):
            return {"message": f"Claim {claim_id} discarded"}
        raise HTTPException(status_code=404, detail="Claim not found")

    # ============================================
    # TERRITORY ENDPOINTS
    # ============================================

    @app.get("/api/territories", response_model=list[TerritoryResponse])
    async def list_territories(request: Request, ownerId: str | None = None):  # noqa: N803
        """Active territories, newest first, optionally for one owner."""
        try:
            territories = await request.app.state.store.list_territories(ownerId)
        except StorageError as e:
            logger.error(f"Listing territories failed: {e}")
            raise HTTPException(status_code=503, detail="Territory store unavailable")
        return [serialize_territory(t) for t in territories]

    @app.get("/api/territories/containing", response_model=TerritoryResponse)
    async def territory_containing(
        request: Request, lat: float, lon: float, ownerId: str | None = None  # noqa: N803
    ):
        """Territory containing a raw-datum point (boundary counts as inside)."""
        try:
            point = RawPoint(lat, lon)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        try:
            territory = await request.app.state.store.query_containing(point, ownerId)
        except StorageError as e:
            logger.error(f"Containment query failed: {e}")
            raise HTTPException(status_code=503, detail="Territory store unavailable")
        if territory is None:
            raise HTTPException(status_code=404, detail="No territory at this location")
        return serialize_territory(territory)

    @app.patch("/api/territories/{territory_id}", response_model=TerritoryResponse)
    async def rename_territory(request: Request, territory_id: str, body: RenameTerritoryRequest):
        """Rename a territory. The boundary never changes."""
        try:
            territory = await request.app.state.store.rename(territory_id, body.name)
        except TerritoryNotFound:
            raise HTTPException(status_code=404, detail="Territory not found")
        except StorageError as e:
            logger.error(f"Renaming territory {territory_id} failed: {e}")
            raise HTTPException(status_code=503, detail="Territory store unavailable")
        return serialize_territory(territory)

    @app.delete("/api/territories/{territory_id}")
    async def delete_territory(request: Request, territory_id: str):
        """Remove a territory (soft delete)."""
        try:
            await request.app.state.store.remove(territory_id)
        except TerritoryNotFound:
            raise HTTPException(status_code=404, detail="Territory not found")
        except StorageError as e:
            logger.error(f"Removing territory {territory_id} failed: {e}")
            raise HTTPException(status_code=503, detail="Territory store unavailable")
        return {"message": f"Territory {territory_id} removed"}

    # ============================================
    # DIAGNOSTICS
    # ============================================

    @app.get("/api/log", response_class=PlainTextResponse)
    async def export_claim_log(request: Request):
        """Recent claim events as a plain-text report."""
        return request.app.state.claim_log.export()


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
