"""Figma REST client - file/node retrieval and image export to local disk."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from figmagate.figma.simplify import SimplifiedDesign, simplify

logger = logging.getLogger(__name__)

FIGMA_API_BASE = "https://api.figma.com/v1"
DEFAULT_TIMEOUT = 30.0


class FigmaApiError(Exception):
    """Raised when a Figma API call fails or returns malformed data."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DownloadError(Exception):
    """Raised when one asset cannot be saved."""


@dataclass
class ImageFillRequest:
    node_id: str
    image_ref: str
    file_name: str


@dataclass
class RenderRequest:
    node_id: str
    file_name: str
    file_type: str  # "png" or "svg"


def _unlink_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def describe_status(status: int) -> str:
    if status == 401:
        return "Invalid Figma API token. Check your FIGMA_API_KEY environment variable."
    if status == 403:
        return "Access denied. You don't have permission to view this file."
    if status == 404:
        return "File or node not found. Check the file key and node ID."
    if status == 429:
        return "Rate limit exceeded. Please wait before making more requests."
    return f"Figma API returned status {status}"


class FigmaService:
    """
    Thin async wrapper over the Figma REST API.

    Every call is a single authenticated round trip (two for image export:
    the URL lookup and the downloads). Nothing is retried; failures surface
    as ``FigmaApiError``.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = FIGMA_API_BASE,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self._headers = {"X-Figma-Token": api_key}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "FigmaService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── Requests ──────────────────────────────────────────────────────────

    async def request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET ``{base_url}{endpoint}`` and return the decoded JSON body."""
        url = f"{self.base_url}{endpoint}"
        try:
            response = await self._client.get(url, headers=self._headers, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise FigmaApiError(describe_status(status), status_code=status) from exc
        except httpx.TimeoutException as exc:
            raise FigmaApiError(f"Request to {endpoint} timed out") from exc
        except httpx.HTTPError as exc:
            raise FigmaApiError(f"Failed to make request to Figma API: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise FigmaApiError(f"Malformed response from {endpoint}: {exc}") from exc
        if not isinstance(data, dict):
            raise FigmaApiError(f"Malformed response from {endpoint}: expected an object")
        return data

    # ── Documents ─────────────────────────────────────────────────────────

    async def get_file(self, file_key: str, depth: Optional[int] = None) -> SimplifiedDesign:
        params = {"depth": depth} if depth else None
        logger.debug("Retrieving file %s (depth=%s)", file_key, depth)
        raw = await self.request(f"/files/{file_key}", params)
        if not isinstance(raw.get("document"), dict):
            raise FigmaApiError(f"Malformed response for file {file_key}: missing 'document'")
        return simplify(raw, max_depth=depth)

    async def get_node(self, file_key: str, node_id: str, depth: Optional[int] = None) -> SimplifiedDesign:
        params: Dict[str, Any] = {"ids": node_id}
        if depth:
            params["depth"] = depth
        logger.debug("Retrieving node %s from file %s (depth=%s)", node_id, file_key, depth)
        raw = await self.request(f"/files/{file_key}/nodes", params)
        if not isinstance(raw.get("nodes"), dict):
            raise FigmaApiError(f"Malformed response for node {node_id}: missing 'nodes'")
        # the API's depth counts levels below the requested node
        return simplify(raw, max_depth=depth + 1 if depth else None)

    # ── Images ────────────────────────────────────────────────────────────

    async def get_image_fills(
        self, file_key: str, nodes: List[ImageFillRequest], local_path: str
    ) -> List[Optional[str]]:
        """Download image fills by ``imageRef``; one entry per request, ``None`` on failure."""
        if not nodes:
            return []

        data = await self.request(f"/files/{file_key}/images")
        images = data.get("meta", {}).get("images", {})
        downloads = []
        for node in nodes:
            url = images.get(node.image_ref)
            if not url:
                logger.error("No image found for imageRef %s (node %s)", node.image_ref, node.node_id)
            downloads.append(self.download_image(node.file_name, local_path, url))
        return list(await asyncio.gather(*downloads))

    async def get_images(
        self, file_key: str, nodes: List[RenderRequest], local_path: str
    ) -> List[Optional[str]]:
        """Render nodes as PNG or SVG and download them, preserving request order."""
        png_ids = [n.node_id for n in nodes if n.file_type == "png"]
        svg_ids = [n.node_id for n in nodes if n.file_type == "svg"]

        formats = []
        lookups = []
        if png_ids:
            formats.append("png")
            lookups.append(self.request(
                f"/images/{file_key}",
                {"ids": ",".join(png_ids), "scale": 2, "format": "png"},
            ))
        if svg_ids:
            formats.append("svg")
            lookups.append(self.request(
                f"/images/{file_key}",
                {
                    "ids": ",".join(svg_ids),
                    "format": "svg",
                    "svg_outline_text": "true",
                    "svg_include_id": "false",
                    "svg_simplify_stroke": "true",
                },
            ))

        # the same node may be requested in both formats, so URLs are kept per format
        urls: Dict[str, Dict[str, Optional[str]]] = {}
        for file_type, data in zip(formats, await asyncio.gather(*lookups)):
            if data.get("err"):
                raise FigmaApiError(f"Image export failed: {data['err']}")
            urls[file_type] = data.get("images") or {}

        downloads = [
            self.download_image(n.file_name, local_path, urls.get(n.file_type, {}).get(n.node_id))
            for n in nodes
        ]
        return list(await asyncio.gather(*downloads))

    async def download_image(self, file_name: str, local_path: str, url: Optional[str]) -> Optional[str]:
        """
        Save ``url`` to ``local_path/file_name``, overwriting any existing file.

        Returns the written path, or ``None`` when the asset could not be saved.
        """
        try:
            if not url:
                raise DownloadError(f"No download URL for {file_name}")
            return await self._save(url, Path(local_path), file_name)
        except (DownloadError, httpx.HTTPError, OSError) as exc:
            logger.error("Failed to download %s: %s", file_name, exc)
            return None

    async def _save(self, url: str, directory: Path, file_name: str) -> str:
        await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)
        target = directory / file_name
        # image URLs are pre-signed; the token header is not sent to them
        async with self._client.stream("GET", url) as response:
            if response.status_code >= 400:
                raise DownloadError(f"{url} returned status {response.status_code}")
            # written beside the target and renamed, so a failed transfer leaves the old file
            tmp = await asyncio.to_thread(
                tempfile.NamedTemporaryFile, dir=directory, prefix=f".{file_name}.", delete=False
            )
            try:
                async for chunk in response.aiter_bytes():
                    await asyncio.to_thread(tmp.write, chunk)
                await asyncio.to_thread(tmp.close)
                await asyncio.to_thread(os.replace, tmp.name, target)
            except BaseException:
                tmp.close()
                _unlink_quietly(tmp.name)
                raise
        return str(target)
