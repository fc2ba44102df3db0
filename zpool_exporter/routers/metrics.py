"""
Prometheus scrape endpoint.
"""

import time
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse

from zpool_exporter.errors import AuthHeaderError
from zpool_exporter.services.auth import AuthResult, query_rules

router = APIRouter(tags=["metrics"])

ENDPOINT_METRICS = "/metrics"


def require_auth(request: Request, authorization: Optional[str]) -> None:
    """Enforce the Basic-auth allow-list, if one is configured."""
    try:
        result = query_rules(request.app.state.auth_rules, authorization)
    except AuthHeaderError as e:
        raise HTTPException(status_code=400, detail="Bad Request") from e

    if result == AuthResult.MISSING_AUTH_HEADER:
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Basic"},
        )
    if result == AuthResult.DENY:
        raise HTTPException(status_code=403, detail="Forbidden")


@router.get(ENDPOINT_METRICS, response_class=PlainTextResponse)
def get_metrics(request: Request, authorization: Optional[str] = Header(None)):
    """
    Current pool metrics in the Prometheus text format.

    Failures are reported as a `# ERROR:` comment body with status 200,
    so the scrape itself stays healthy.
    """
    start_time = time.monotonic()
    require_auth(request, authorization)
    body = request.app.state.app_context.get_metrics_body(start_time)
    return PlainTextResponse(body)
