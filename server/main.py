from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from config.config import SECRET_KEY, FRONTEND_URL
from database.factory import get_database, reset_database
from helpers.Logger import get_logger
from models.errors import TournamentError
from routes import EventRouter, TeamRouter, UserRouter, LeaderboardRouter

''' The backend API Endpoints setup '''

logger = get_logger("main")

if not SECRET_KEY:
    raise ValueError("SECRET_KEY environment variable not set!")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Initialize database
    db = get_database()
    await db.initialize()
    app.state.db = db
    logger.info("Database connected successfully")

    yield

    # Shutdown: Clean up resources
    reset_database()
    logger.info("Application shutting down")

app = FastAPI(lifespan=lifespan)

allowed_origins = [FRONTEND_URL]
if FRONTEND_URL != "http://localhost:5173":
    allowed_origins.append("http://localhost:5173")

logger.info(f"Allowed origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)


@app.exception_handler(TournamentError)
async def tournament_error_handler(request: Request, exc: TournamentError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.kind})


@app.get("/api/health")
async def health(request: Request):
    healthy = await request.app.state.db.health_check()
    return {"status": "healthy" if healthy else "degraded", "database": healthy}


# Include routers
app.include_router(UserRouter.router, prefix="/api/users", tags=["Users"])
app.include_router(TeamRouter.router, prefix="/api/teams", tags=["Teams"])
app.include_router(EventRouter.router, prefix="/api/events", tags=["Events"])
app.include_router(LeaderboardRouter.router, prefix="/api/leaderboard", tags=["Leaderboard"])
