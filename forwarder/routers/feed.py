"""Feed and download forwarding endpoints."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from fastapi.responses import PlainTextResponse, RedirectResponse

from forwarder.core.logging import get_logger
from forwarder.core.settings import Settings, get_settings
from forwarder.rss.reference import resolve
from forwarder.rss.replacer import Replacer
from forwarder.services.analytics import RequestInfo, dispatch_events
from forwarder.services.http import HttpService, forwardable_headers, get_http_service
from forwarder.services.user_agent import client_from_headers

logger = get_logger(__name__)

router = APIRouter()


@router.head("/")
async def head_feed(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    http: Annotated[HttpService, Depends(get_http_service)],
) -> Response:
    """Forward a HEAD request, with the caller's headers, to the upstream feed."""
    upstream = await http.head(settings.upstream_feed_url, headers=request.headers)
    return Response(
        status_code=upstream.status_code,
        headers=forwardable_headers(upstream.headers),
    )


@router.get("/")
async def get_feed(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    http: Annotated[HttpService, Depends(get_http_service)],
) -> Response:
    """
    Serve the upstream feed with audio links rewritten to pass through this service.

    The original audio URL is kept in the `ref` parameter of each rewritten
    link, and `<link>` elements point at the website.
    """
    client = client_from_headers(request.headers)
    logger.info(f"Received request from {client.name}")

    upstream = await http.fetch(settings.upstream_feed_url)

    replacer = Replacer(settings.website_url, str(request.url), settings.path_prefix)
    output = replacer.replace(upstream.text)

    response = Response(content=output, headers=forwardable_headers(upstream.headers))
    response.headers.append("set-cookie", settings.cookie)
    return response


@router.get("/version", response_class=PlainTextResponse)
def get_version(settings: Annotated[Settings, Depends(get_settings)]) -> str:
    return settings.version


@router.get("/{forward_path:path}")
async def forward_download(
    forward_path: str,
    request: Request,
    background_tasks: BackgroundTasks,
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """
    Redirect an indirection request to the original audio file.

    Invalid paths and missing or malformed references raise ForwardingError,
    which the app maps to 404.
    """
    target = resolve(request.url.path, str(request.url), settings.path_prefix)

    client = client_from_headers(request.headers)
    logger.info(
        f"Forwarding {client.name} to {target}",
        extra={
            "component": "feed_router",
            "operation": "forward_download",
            "request_path": request.url.path,
            "client": client.name,
            "context_data": {"is_bot": client.is_bot},
        },
    )

    info = RequestInfo(path=request.url.path, url=str(request.url), headers=dict(request.headers))
    background_tasks.add_task(dispatch_events, info, settings)

    response = RedirectResponse(url=target, status_code=302)
    response.headers.append("set-cookie", settings.cookie)
    return response
