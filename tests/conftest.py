"""Shared fixtures: a sample Figma document and a fake Figma API."""

import copy
import logging
from typing import Dict, List, Optional

import httpx
import pytest

from figmagate.figma.client import FigmaService

BLACK = {"type": "SOLID", "color": {"r": 0, "g": 0, "b": 0, "a": 1}}
BODY_STYLE = {"fontFamily": "Inter", "fontWeight": 400, "fontSize": 16, "lineHeightPx": 24}

HERO = {
    "id": "1:2",
    "name": "Hero",
    "type": "FRAME",
    "layoutMode": "VERTICAL",
    "itemSpacing": 16,
    "paddingTop": 24,
    "paddingRight": 24,
    "paddingBottom": 24,
    "paddingLeft": 24,
    "absoluteBoundingBox": {"x": 0, "y": 0, "width": 1440, "height": 900},
    "fills": [{"type": "SOLID", "color": {"r": 1, "g": 1, "b": 1, "a": 1}}],
    "children": [
        {
            "id": "1:3",
            "name": "Title",
            "type": "TEXT",
            "characters": "Hello",
            "style": {"fontFamily": "Inter", "fontWeight": 700, "fontSize": 48, "lineHeightPx": 57.6},
            "fills": [BLACK],
        },
        {
            "id": "1:4",
            "name": "Body",
            "type": "TEXT",
            "characters": "First paragraph",
            "style": dict(BODY_STYLE),
            "fills": [BLACK],
        },
        {
            "id": "1:8",
            "name": "Body 2",
            "type": "TEXT",
            "characters": "Second paragraph",
            "style": dict(BODY_STYLE),
            "fills": [BLACK],
        },
        {
            "id": "1:5",
            "name": "Icon",
            "type": "VECTOR",
            "fills": [BLACK],
            "strokes": [{"type": "SOLID", "color": {"r": 0, "g": 0, "b": 1, "a": 1}}],
            "strokeWeight": 2,
        },
        {"id": "1:6", "name": "Hidden", "type": "RECTANGLE", "visible": False},
        {
            "id": "1:7",
            "name": "Photo",
            "type": "RECTANGLE",
            "fills": [{"type": "IMAGE", "imageRef": "img-ref-1", "scaleMode": "FILL"}],
            "cornerRadius": 8,
            "effects": [{
                "type": "DROP_SHADOW",
                "visible": True,
                "offset": {"x": 0, "y": 4},
                "radius": 8,
                "spread": 0,
                "color": {"r": 0, "g": 0, "b": 0, "a": 0.25},
            }],
        },
    ],
}

RAW_FILE = {
    "name": "Landing Page",
    "lastModified": "2024-05-01T10:00:00Z",
    "thumbnailUrl": "https://example.com/thumb.png",
    "document": {
        "id": "0:0",
        "name": "Document",
        "type": "DOCUMENT",
        "children": [
            {"id": "0:1", "name": "Page 1", "type": "CANVAS", "children": [HERO]},
            {"id": "0:2", "name": "Drafts", "type": "CANVAS", "visible": False, "children": []},
        ],
    },
}

RAW_NODES = {
    "name": "Landing Page",
    "lastModified": "2024-05-01T10:00:00Z",
    "thumbnailUrl": "https://example.com/thumb.png",
    "nodes": {"1:2": {"document": HERO}},
}

CDN = "cdn.example.com"


class FakeFigmaApi:
    """
    Request handler for ``httpx.MockTransport`` that imitates the Figma REST API
    and its image CDN. Every request is recorded in ``requests``.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.file = copy.deepcopy(RAW_FILE)
        self.nodes = copy.deepcopy(RAW_NODES)
        self.fills: Dict[str, str] = {"img-ref-1": f"https://{CDN}/fills/img-ref-1"}
        self.missing_renders: List[str] = []
        self.broken_downloads: List[str] = []
        self.status: Optional[int] = None
        self.fills_status: Optional[int] = None

    @property
    def api_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host != CDN]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.url.host == CDN:
            if path in self.broken_downloads:
                return httpx.Response(500)
            return httpx.Response(200, content=f"image:{path}".encode())

        if self.status:
            return httpx.Response(self.status, json={"status": self.status, "err": "nope"})

        if path.startswith("/v1/images/"):
            fmt = request.url.params["format"]
            ids = request.url.params["ids"].split(",")
            images = {
                node_id: f"https://{CDN}/{fmt}/{node_id.replace(':', '-')}"
                for node_id in ids
                if node_id not in self.missing_renders
            }
            return httpx.Response(200, json={"err": None, "images": images})
        if path.endswith("/images"):
            if self.fills_status:
                return httpx.Response(self.fills_status, json={"status": self.fills_status, "err": "nope"})
            return httpx.Response(200, json={"error": False, "meta": {"images": self.fills}})
        if path.endswith("/nodes"):
            return httpx.Response(200, json=self.nodes)
        if path.startswith("/v1/files/"):
            return httpx.Response(200, json=self.file)
        return httpx.Response(404)


@pytest.fixture
def raw_file():
    return copy.deepcopy(RAW_FILE)


@pytest.fixture
def raw_nodes():
    return copy.deepcopy(RAW_NODES)


@pytest.fixture
def figma_api():
    return FakeFigmaApi()


@pytest.fixture
def service(figma_api):
    client = httpx.AsyncClient(transport=httpx.MockTransport(figma_api))
    return FigmaService("figd_test_token", client=client)


@pytest.fixture
def test_logger():
    log = logging.getLogger("figmagate.tests")
    log.setLevel(logging.DEBUG)
    yield log
    for handler in list(log.handlers):
        log.removeHandler(handler)
