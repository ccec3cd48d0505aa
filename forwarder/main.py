import time

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse

from forwarder.core.logging import setup_logging
from forwarder.core.settings import get_settings
from forwarder.routers import feed
from forwarder.rss.reference import ForwardingError
from forwarder.services.http import NonRetryableError
from forwarder.services.user_agent import load_user_agents
from forwarder.utils.error_logger import log_rejected_forward

# Initialize
settings = get_settings()
logger = setup_logging()

# Create app
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Podcast feed forwarder with download analytics",
)


# Exception handlers
@app.exception_handler(ForwardingError)
async def forwarding_error_handler(request: Request, exc: ForwardingError):
    """Reject indirection requests that can't be redirected."""
    log_rejected_forward(exc, request.url.path)
    return PlainTextResponse(exc.message, status_code=status.HTTP_404_NOT_FOUND)


@app.exception_handler(NonRetryableError)
@app.exception_handler(httpx.HTTPError)
async def upstream_error_handler(request: Request, exc: Exception):
    """Upstream feed could not be fetched. Details are logged by the HTTP service."""
    logger.error(f"Upstream request failed for {request.method} {request.url.path}: {exc}")
    return PlainTextResponse("Upstream feed unavailable", status_code=status.HTTP_502_BAD_GATEWAY)


# Request logging middleware with timing
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming HTTP requests with timing information."""
    start_time = time.perf_counter()

    logger.info(f">>> {request.method} {request.url.path}")
    logger.debug(f"    Headers: {dict(request.headers)}")

    response = await call_next(request)

    duration_ms = (time.perf_counter() - start_time) * 1000
    response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

    method = request.method
    path = request.url.path
    time_str = f"{duration_ms:.2f}ms"
    if duration_ms < 500:
        logger.info(f"<<< {method} {path} - {response.status_code} [{time_str}]")
    else:
        logger.warning(f"<<< {method} {path} - {response.status_code} [{time_str}] (slow)")

    return response


# Startup event
@app.on_event("startup")
async def startup_event():
    """Load the user agent table before the first request."""
    logger.info("Starting up...")
    if not settings.upstream_feed_url:
        logger.warning("UPSTREAM_FEED_URL is not set, feed requests will fail")
    load_user_agents()


# Health check, registered before the catch-all forward route
@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.app_name}


app.include_router(feed.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
