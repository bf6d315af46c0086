"""
FastAPI application for the voting portal.

One running portal serves one operator: the session lives in process
memory, mirrored to a JSON file so it survives restarts. Admins manage
candidates and read turnout; voters list candidates and cast one vote.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from services.shared.models import (
    Identity,
    Role,
    VoteStatus,
    MSG_LOGIN_MISSING,
    MSG_LOGIN_FAILED,
    MSG_CANDIDATE_REQUIRED,
    MSG_VOTE_VOTERS_ONLY,
)

from .candidates import add_candidate, election_stats, list_candidates
from .config import settings
from .database import DatabaseError, database
from .models import (
    CandidateCreateRequest,
    CandidateResponse,
    ErrorResponse,
    HealthResponse,
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    SessionResponse,
    StatsResponse,
    VoteRequest,
    VoteResponse,
)
from .portal import Portal
from .session import LocalStorage, SessionHolder

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Prometheus metrics
login_attempts = Counter(
    "portal_login_attempts_total",
    "Total number of login attempts",
    ["outcome"]
)
request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"]
)

# Rate limiter
limiter = Limiter(key_func=get_remote_address)

API_PREFIX = f"/api/{settings.API_VERSION}"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info(f"Starting {settings.SERVICE_NAME} service...")

    try:
        await database.initialize()
        if settings.APPLY_SCHEMA:
            await database.apply_schema()

        session = SessionHolder(LocalStorage(settings.SESSION_FILE), key=settings.SESSION_KEY)
        session.restore()
        app.state.portal = Portal(database, session)

        logger.info(f"{settings.SERVICE_NAME} started successfully")

    except Exception as e:
        logger.error(f"Failed to start {settings.SERVICE_NAME}: {e}")
        raise

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.SERVICE_NAME} service...")
    await database.close()
    logger.info(f"{settings.SERVICE_NAME} shut down successfully")


# Create FastAPI app
app = FastAPI(
    title="Voting Portal API",
    description="Candidate management, turnout statistics and one-vote-per-voter casting",
    version=settings.API_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def prometheus_middleware(request: Request, call_next):
    """Middleware to track request duration."""
    started = time.perf_counter()
    response = await call_next(request)
    request_duration.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code
    ).observe(time.perf_counter() - started)
    return response


def get_portal(request: Request) -> Portal:
    return request.app.state.portal


def _identity_response(identity: Identity) -> IdentityResponse:
    return IdentityResponse(**identity.to_dict())


def _require_session(portal: Portal) -> Identity:
    identity = portal.session.identity
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not logged in"
        )
    return identity


def require_user(portal: Portal = Depends(get_portal)) -> Identity:
    return _require_session(portal)


def require_admin(portal: Portal = Depends(get_portal)) -> Identity:
    identity = _require_session(portal)
    if identity.role != Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required"
        )
    return identity


def require_voter(portal: Portal = Depends(get_portal)) -> Identity:
    identity = _require_session(portal)
    if identity.role != Role.VOTER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=MSG_VOTE_VOTERS_ONLY
        )
    return identity


@app.get(f"{API_PREFIX}/session", response_model=SessionResponse)
async def get_session(portal: Portal = Depends(get_portal)) -> SessionResponse:
    """Current view (login, admin or voter) and the logged-in identity."""
    identity = portal.session.identity
    return SessionResponse(
        view=portal.view,
        user=_identity_response(identity) if identity else None
    )


@app.post(
    f"{API_PREFIX}/login",
    response_model=LoginResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing voter id or password"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        429: {"description": "Rate limit exceeded"},
        503: {"model": ErrorResponse, "description": "Backend unavailable"}
    }
)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    credentials: LoginRequest,
    portal: Portal = Depends(get_portal)
) -> LoginResponse:
    """
    Log in with a voter id and password.

    - **voter_id**: Login handle
    - **password**: Account password

    Returns the sanitized identity; the password is never echoed back.
    """
    result = await portal.credentials.login(credentials.voter_id, credentials.password)

    if not result.success:
        if result.message == MSG_LOGIN_MISSING:
            login_attempts.labels(outcome="missing_fields").inc()
            code = status.HTTP_400_BAD_REQUEST
        elif result.message == MSG_LOGIN_FAILED:
            login_attempts.labels(outcome="backend_error").inc()
            code = status.HTTP_503_SERVICE_UNAVAILABLE
        else:
            login_attempts.labels(outcome="invalid").inc()
            code = status.HTTP_401_UNAUTHORIZED
        raise HTTPException(status_code=code, detail=result.message)

    login_attempts.labels(outcome="success").inc()
    return LoginResponse(
        success=True,
        message=result.message,
        user=_identity_response(result.identity)
    )


@app.post(f"{API_PREFIX}/logout")
async def logout(portal: Portal = Depends(get_portal)):
    """End the current session. Safe to call when logged out."""
    portal.credentials.logout()
    return {"success": True, "view": portal.view}


@app.get(f"{API_PREFIX}/candidates", response_model=list[CandidateResponse])
async def get_candidates(
    order: str = Query("name", pattern="^(name|votes)$"),
    portal: Portal = Depends(get_portal),
    identity: Identity = Depends(require_user)
) -> list[CandidateResponse]:
    """
    List all candidates.

    - **order**: 'name' (alphabetical) or 'votes' (highest tally first)

    Returns an empty list when the backend cannot be reached.
    """
    candidates = await list_candidates(portal.store, order=order)
    return [CandidateResponse(**candidate.to_dict()) for candidate in candidates]


@app.post(
    f"{API_PREFIX}/candidates",
    response_model=CandidateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Missing required fields"},
        500: {"model": ErrorResponse, "description": "Candidate could not be saved"}
    }
)
async def create_candidate(
    candidate: CandidateCreateRequest,
    portal: Portal = Depends(get_portal),
    identity: Identity = Depends(require_admin)
) -> CandidateResponse:
    """Add a candidate with a zero tally (admin only)."""
    result = await add_candidate(
        portal.store,
        candidate.name,
        candidate.party,
        candidate.description or ""
    )

    if not result.success:
        if result.message == MSG_CANDIDATE_REQUIRED:
            code = status.HTTP_400_BAD_REQUEST
        else:
            code = status.HTTP_500_INTERNAL_SERVER_ERROR
        raise HTTPException(status_code=code, detail=result.message)

    logger.info(f"Admin {identity.voter_id} added candidate {result.candidate.id}")
    return CandidateResponse(**result.candidate.to_dict())


@app.get(f"{API_PREFIX}/stats", response_model=StatsResponse)
async def get_stats(
    portal: Portal = Depends(get_portal),
    identity: Identity = Depends(require_admin)
) -> StatsResponse:
    """Total votes, voter count, voters who voted and turnout percentage."""
    try:
        stats = await election_stats(portal.store)
    except DatabaseError as e:
        logger.error(f"Error computing election stats: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )
    return StatsResponse(**stats.to_dict())


@app.post(
    f"{API_PREFIX}/vote",
    response_model=VoteResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Candidate not found"},
        409: {"model": ErrorResponse, "description": "A vote is already being submitted"},
        500: {"model": ErrorResponse, "description": "Vote could not be recorded"}
    }
)
async def cast_vote(
    vote: VoteRequest,
    portal: Portal = Depends(get_portal),
    identity: Identity = Depends(require_voter)
) -> VoteResponse:
    """
    Cast the session's one vote.

    - **candidate_id**: Chosen candidate

    A second attempt, from this or any other session of the same voter,
    returns status 'already_voted' and changes nothing.
    """
    result = await portal.recorder.cast_vote(vote.candidate_id)

    if result.status in (VoteStatus.SUCCESS, VoteStatus.ALREADY_VOTED):
        return VoteResponse(
            status=result.status.value,
            message=result.message,
            has_voted=portal.session.identity.has_voted
        )

    if result.status == VoteStatus.CANDIDATE_NOT_FOUND:
        code = status.HTTP_404_NOT_FOUND
    elif result.status == VoteStatus.IN_PROGRESS:
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    raise HTTPException(status_code=code, detail=result.message)


@app.get(
    f"{API_PREFIX}/health",
    response_model=HealthResponse,
    responses={
        503: {"model": HealthResponse, "description": "Service unhealthy"}
    }
)
async def health_check(portal: Portal = Depends(get_portal)) -> HealthResponse:
    """Check health of the service and its database."""
    services = {}

    try:
        postgres_healthy = await portal.store.check_health()
        services["postgresql"] = "connected" if postgres_healthy else "disconnected"
    except Exception as e:
        logger.error(f"PostgreSQL health check error: {e}")
        services["postgresql"] = "error"

    all_healthy = all(state == "connected" for state in services.values())

    response = HealthResponse(
        status="healthy" if all_healthy else "unhealthy",
        services=services,
        timestamp=datetime.utcnow()
    )

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json")
    )


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.API_VERSION,
        "status": "running",
        "endpoints": {
            "session": f"{API_PREFIX}/session",
            "login": f"{API_PREFIX}/login",
            "logout": f"{API_PREFIX}/logout",
            "candidates": f"{API_PREFIX}/candidates",
            "stats": f"{API_PREFIX}/stats",
            "vote": f"{API_PREFIX}/vote",
            "health": f"{API_PREFIX}/health",
            "metrics": "/metrics"
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.portal_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
