"""
Figmagate Tools - The tool surface exposed to clients.

- get_document_data: simplified JSON for a whole file or one node
- download_images: save rendered nodes (PNG/SVG) and image fills locally
"""

import asyncio
import json
import logging
import re
from pathlib import PurePath
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from figmagate.figma.client import FigmaApiError, FigmaService, ImageFillRequest, RenderRequest
from figmagate.gateway.executor import ToolGateway
from figmagate.gateway.schema import InvocationResult, ToolDef

logger = logging.getLogger(__name__)

FILE_URL_PATTERN = re.compile(r"figma\.com/(?:file|design)/([a-zA-Z0-9]+)")
FILE_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")
NODE_ID_PATTERN = re.compile(r"^I?\d+:\d+(?:;I?\d+:\d+)*$")


def normalize_file_key(value: str) -> str:
    """Accept a bare key or a figma.com/(file|design)/<key> URL."""
    if "figma.com" in value:
        match = FILE_URL_PATTERN.search(value)
        if not match:
            raise ValueError("Could not extract file key from Figma URL")
        return match.group(1)
    if not FILE_KEY_PATTERN.match(value):
        raise ValueError(f"Invalid file key: {value!r}")
    return value


def normalize_node_id(value: str) -> str:
    """``1-2`` (URL form) becomes ``1:2``; anything that isn't a node id is rejected."""
    node_id = value.replace("-", ":")
    if not NODE_ID_PATTERN.match(node_id):
        raise ValueError(f"Invalid node id: {value!r}, expected a form like 1234:5678")
    return node_id


class DocumentArgs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    file_key: str = Field(
        ...,
        alias="fileKey",
        description="The key of the Figma file to fetch, often found in a provided URL like figma.com/(file|design)/<fileKey>/...",
    )
    node_id: Optional[str] = Field(
        default=None,
        alias="nodeId",
        description="The ID of the node to fetch, often found as URL parameter node-id=<nodeId>, always use if provided",
    )
    depth: Optional[int] = Field(
        default=None,
        ge=1,
        description="How many levels deep to traverse the node tree, only use if explicitly requested by the user",
    )

    @field_validator("file_key")
    @classmethod
    def validate_file_key(cls, v: str) -> str:
        return normalize_file_key(v)

    @field_validator("node_id")
    @classmethod
    def validate_node_id(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        return normalize_node_id(v)


class ImageNode(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    node_id: str = Field(..., alias="nodeId", description="The ID of the Figma image node to fetch, formatted as 1234:5678")
    image_ref: Optional[str] = Field(
        default=None,
        alias="imageRef",
        description="If a node has an imageRef fill, you must include this variable. Leave blank when downloading Vector SVG images.",
    )
    file_name: str = Field(..., alias="fileName", description="The local name for saving the fetched file")

    @field_validator("node_id")
    @classmethod
    def validate_node_id(cls, v: str) -> str:
        return normalize_node_id(v)

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        if not v or v in (".", "..") or PurePath(v).name != v or "\\" in v:
            raise ValueError(f"fileName must be a plain file name, got {v!r}")
        return v

    @property
    def file_type(self) -> str:
        return "svg" if self.file_name.lower().endswith(".svg") else "png"


class DownloadArgs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    file_key: str = Field(..., alias="fileKey", description="The key of the Figma file containing the node")
    nodes: List[ImageNode] = Field(..., description="The nodes to fetch as images")
    local_path: str = Field(
        ...,
        alias="localPath",
        min_length=1,
        description="The absolute path to the directory where images are stored in the project. Automatically creates directories if needed.",
    )

    @field_validator("file_key")
    @classmethod
    def validate_file_key(cls, v: str) -> str:
        return normalize_file_key(v)


class FigmaTools:
    """Handlers for the Figma tools, bound to one FigmaService."""

    def __init__(self, service: FigmaService):
        self.service = service

    async def get_document_data(self, args: DocumentArgs) -> InvocationResult:
        logger.info(
            "Fetching %s of %s %s",
            f"{args.depth} layers deep" if args.depth else "all layers",
            f"node {args.node_id} from file" if args.node_id else "full file",
            args.file_key,
        )
        try:
            if args.node_id:
                design = await self.service.get_node(args.file_key, args.node_id, args.depth)
            else:
                design = await self.service.get_file(args.file_key, args.depth)
        except FigmaApiError as exc:
            logger.error("Error fetching file %s: %s", args.file_key, exc)
            return InvocationResult.failure(f"Error fetching file: {exc}")

        logger.info("Successfully fetched file: %s", design.name)

        # one node at a time keeps each json.dumps call small for big files
        nodes_json = "[" + ",".join(json.dumps(node, indent=2) for node in design.nodes) + "]"
        metadata_json = json.dumps(design.metadata(), indent=2)
        global_vars_json = json.dumps(design.global_vars, indent=2)
        return InvocationResult.text(
            f'{{ "metadata": {metadata_json}, "nodes": {nodes_json}, "globalVars": {global_vars_json} }}'
        )

    async def download_images(self, args: DownloadArgs) -> InvocationResult:
        fills = [
            ImageFillRequest(node_id=n.node_id, image_ref=n.image_ref, file_name=n.file_name)
            for n in args.nodes
            if n.image_ref
        ]
        renders = [
            RenderRequest(node_id=n.node_id, file_name=n.file_name, file_type=n.file_type)
            for n in args.nodes
            if not n.image_ref
        ]

        # both batches run to completion before any error is reported
        fill_paths, render_paths = await asyncio.gather(
            self.service.get_image_fills(args.file_key, fills, args.local_path),
            self.service.get_images(args.file_key, renders, args.local_path),
            return_exceptions=True,
        )
        for outcome in (fill_paths, render_paths):
            if isinstance(outcome, FigmaApiError):
                logger.error("Error downloading images from file %s: %s", args.file_key, outcome)
                return InvocationResult.failure(f"Error downloading images: {outcome}")
            if isinstance(outcome, BaseException):
                raise outcome

        downloads = fill_paths + render_paths
        failed = sum(1 for path in downloads if not path)
        if failed:
            return InvocationResult.failure(
                f"Failed, {failed} of {len(downloads)} images could not be downloaded"
            )
        return InvocationResult.text(f"Success, {len(downloads)} images downloaded: {', '.join(downloads)}")

    def definitions(self) -> List[ToolDef]:
        return [
            ToolDef.build(
                name="get_document_data",
                description="When the nodeId cannot be obtained, obtain the layout information about the entire Figma file",
                args_model=DocumentArgs,
                handler=self.get_document_data,
            ),
            ToolDef.build(
                name="download_images",
                description="Download SVG and PNG images used in a Figma file based on the IDs of image or icon nodes",
                args_model=DownloadArgs,
                handler=self.download_images,
            ),
        ]


def register_figma_tools(gateway: ToolGateway, service: FigmaService) -> FigmaTools:
    tools = FigmaTools(service)
    for definition in tools.definitions():
        gateway.register(definition)
    return tools
