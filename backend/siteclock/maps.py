from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from .models import GeoPoint

EMBED_BASE_URL = "https://www.google.com/maps/embed/v1/view"
DEFAULT_ZOOM = 16


def map_embed_url(geo: Optional[GeoPoint], api_key: str, zoom: int = DEFAULT_ZOOM) -> Optional[str]:
    """Embed URL centred on ``geo``; ``None`` means render the placeholder."""
    if geo is None:
        return None
    query = urlencode(
        {
            "key": api_key,
            "center": geo.as_text(),
            "zoom": zoom,
            "maptype": "roadmap",
        }
    )
    return f"{EMBED_BASE_URL}?{query}"


__all__ = ["EMBED_BASE_URL", "DEFAULT_ZOOM", "map_embed_url"]
