import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from stocksage.api import insights, series
from stocksage.config import settings

logger = logging.getLogger(__name__)

# Rate limiter: per-IP limits are set on individual routes
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(
    title="StockSage API",
    description="CSV stock analysis with AI predictions and chat",
    version="0.1.0",
)

# Attach rate limiter to app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions and return generic error.

    Prevents stack traces from leaking to the client.
    """
    logger.error("Unhandled exception on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.on_event("startup")
def on_startup() -> None:
    # Validate configuration
    if not settings.GROQ_API_KEY and not settings.OPENAI_API_KEY:
        logger.warning(
            "No LLM API key set. Predictions, recommendations and chat will be unavailable."
        )


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "environment": settings.ENVIRONMENT}


app.include_router(series.router, prefix="/api", tags=["series"])
app.include_router(insights.router, prefix="/api", tags=["insights"])
