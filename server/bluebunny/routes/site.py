# ─────────────────────────────────────────────────────────────────────────────
# Site Routes: crawler declarations
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from bluebunny.config import Settings
from bluebunny.dependencies import get_settings_dep

router = APIRouter()


def render_robots(site_url: str) -> str:
    """robots.txt allowing every crawler and pointing at the sitemap."""
    base = site_url.strip().rstrip("/")
    return f"User-Agent: *\nAllow: /\n\nHost: {base}\nSitemap: {base}/sitemap.xml\n"


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots(settings: Settings = Depends(get_settings_dep)) -> str:
    return render_robots(settings.site_url)
