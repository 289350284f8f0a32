import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .agents.signal_aggregation.http_client import BackendClient, close_client
from .agents.signal_aggregation.orchestrator import SourceOrchestrator
from .database import init_db
from .routes.analysis import router as analysis_router


# Load environment variables from .env file
load_dotenv()

logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG", "false").lower() == "true" else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:3001"


@asynccontextmanager
async def lifespan(app: FastAPI):

    # Startup
    client = BackendClient()
    print("Starting PM-Fit Signal Aggregator")
    print(f"   Backend URL: {client.base_url if client.configured else ' Not set (all sources unavailable)'}")
    print(f"   Backend Key: {' Configured' if client.api_key else ' Not set'}")
    init_db()
    app.state.orchestrator = SourceOrchestrator(client)
    print("   Ready to score startup ideas!")

    yield

    await close_client()
    print("Shutting down PM-Fit Signal Aggregator")


app = FastAPI(
    title="PM-Fit Signal Aggregator",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
        if origin.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analysis_router)


@app.get(
    "/",
    summary="API Root",
    description="Welcome endpoint with API information",
    tags=["General"]
)
async def root():
    """Root endpoint with API information."""
    return {
        "name": "PM-Fit Signal Aggregator",
        "version": "0.1.0",
        "description": "Market-signal aggregation and PM-Fit scoring for startup ideas",
        "docs": "/docs",
        "endpoints": {
            "analyze": "POST /analysis - Analyze an idea across all sources",
            "stream": "POST /analysis/stream - Same, as server-sent events",
            "refresh": "POST /analysis/sources/{source}/refresh - Re-fetch one source",
            "rescore": "POST /analysis/rescore - Re-score with new refinements",
            "session": "GET /analysis/session - Last analyzed idea",
        }
    }


@app.get(
    "/health",
    summary="Global Health Check",
    description="Check if the API server is running",
    tags=["General"]
)
async def health():
    """Global health check endpoint."""
    return {
        "status": "healthy",
        "service": "pm-fit-signal-aggregator",
        "version": "0.1.0"
    }


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logging.getLogger(__name__).exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "detail": str(exc) if os.getenv("DEBUG", "false").lower() == "true" else "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("DEBUG", "true").lower() == "true",
    )
