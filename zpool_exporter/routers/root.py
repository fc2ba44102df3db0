"""
Landing page.
"""

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from zpool_exporter import __version__
from zpool_exporter.routers.metrics import ENDPOINT_METRICS

router = APIRouter(tags=["root"])

LANDING_PAGE = """<!DOCTYPE html>
<html>
<head><title>zpool-status-exporter</title></head>
<body>
<h1>zpool-status-exporter</h1>
<p>Version {version}</p>
<p><a href="{metrics}">Metrics</a></p>
</body>
</html>
"""


@router.get("/", response_class=HTMLResponse)
async def root():
    """Root endpoint - links to the metrics."""
    return HTMLResponse(LANDING_PAGE.format(version=__version__, metrics=ENDPOINT_METRICS))
