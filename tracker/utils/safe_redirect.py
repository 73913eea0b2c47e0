"""Return-path validation for dashboard form posts."""

from urllib.parse import urlparse

# Views a dashboard form may send the browser back to
VIEW_PATHS = ("/dashboard/table", "/dashboard/timeline")


def safe_view_url(url: str, fallback: str = "/dashboard/table") -> str:
    """Return `url` if it points at one of the dashboard views, else `fallback`.

    Absolute and protocol-relative URLs are never returned, so a crafted
    `next` parameter cannot send the user off-site.
    """
    if not url or not isinstance(url, str):
        return fallback

    parsed = urlparse(url.strip())
    if parsed.scheme or parsed.netloc:
        return fallback
    if parsed.path not in VIEW_PATHS:
        return fallback

    return parsed.path
