import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from feedback_ai.api.v1.feedback_analysis import router as feedback_router
from feedback_ai.core.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Feedback AI API",
    version="1.0.0",
    docs_url="/docs" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
)

app.include_router(feedback_router, prefix="/api/v1", tags=["feedback"])

if not settings.ai_enabled:
    logger.warning("AI provider %r is not configured; analysis will use keyword fallback", settings.ai_provider)


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
async def health():
    return {"status": "ok", "ai_enabled": settings.ai_enabled, "ai_provider": settings.ai_provider}
