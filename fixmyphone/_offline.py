"""Responses synthesized when neither the network nor the cache can answer."""

import json

from .models import Response

# OFFLINE HTML (for HTML requests with no network, no cache and no offline page)
# Minimal self-contained page so the browser always has something to render.

OFFLINE_HTML = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>Offline - FixMyPhone</title>
    <style>
      body { font-family: Arial, sans-serif; text-align: center; padding: 50px; }
      .offline { color: #666; }
    </style>
  </head>
  <body>
    <h1>You're Offline</h1>
    <p class="offline">Please check your internet connection and try again.</p>
  </body>
</html>"""

# IMAGE PLACEHOLDER (for image requests that fail without a cached copy)

IMAGE_PLACEHOLDER_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="200" height="200" viewBox="0 0 200 200">'
    '<rect width="200" height="200" fill="#f0f0f0"/>'
    '<text x="50%" y="50%" text-anchor="middle" dy="0.3em" font-family="Arial" font-size="14" '
    'fill="#999">Image Unavailable</text></svg>'
)

OFFLINE_API_MESSAGE = "This feature requires an internet connection"


def offline_html_response() -> Response:
    return Response(
        status=200,
        headers={"Content-Type": "text/html"},
        body=OFFLINE_HTML.encode("utf-8"),
        status_text="OK",
    )


def image_placeholder_response() -> Response:
    return Response(
        status=200,
        headers={"Content-Type": "image/svg+xml"},
        body=IMAGE_PLACEHOLDER_SVG.encode("utf-8"),
        status_text="OK",
    )


def offline_api_response(message: str = OFFLINE_API_MESSAGE) -> Response:
    """JSON 503 telling API callers to retry once back online."""
    body = {"error": "Offline", "message": message, "offline": True}
    return Response(
        status=503,
        headers={"Content-Type": "application/json"},
        body=json.dumps(body).encode("utf-8"),
        status_text="Service Unavailable",
    )
