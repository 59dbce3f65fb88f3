"""
Result and discovery types shared by the client, the trust policy and the bridge.

`CallResult.from_mcp` turns an `mcp.types.CallToolResult` (or a dict-shaped
equivalent) into plain frozen dataclasses so the trust policy can stay a pure
function with no SDK dependency.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class OperationInfo:
    """A tool discovered on an MCP server."""

    endpoint: str
    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: str = "text"


@dataclass(frozen=True)
class ImageBlock:
    data: str
    mime_type: str
    type: str = "image"


@dataclass(frozen=True)
class ResourceBlock:
    uri: str
    text: Optional[str] = None
    blob: Optional[str] = None
    mime_type: Optional[str] = None
    type: str = "resource"


@dataclass(frozen=True)
class RawBlock:
    """Any other content type (audio, resource links from newer servers...)."""

    payload: Dict[str, Any]
    type: str = "raw"


ContentBlock = Union[TextBlock, ImageBlock, ResourceBlock, RawBlock]


@dataclass(frozen=True)
class CallResult:
    content: Tuple[ContentBlock, ...] = ()
    is_error: bool = False

    @classmethod
    def from_mcp(cls, result: Any) -> "CallResult":
        if isinstance(result, dict):
            raw_content = result.get("content") or []
            is_error = bool(result.get("isError", False))
        else:
            raw_content = getattr(result, "content", None) or []
            is_error = bool(getattr(result, "isError", False))
        return cls(content=tuple(_to_block(b) for b in raw_content), is_error=is_error)


def _field(block: Any, name: str) -> Any:
    if isinstance(block, dict):
        return block.get(name)
    return getattr(block, name, None)


def _to_block(block: Any) -> ContentBlock:
    kind = _field(block, "type")

    if kind == "text":
        return TextBlock(text=str(_field(block, "text") or ""))

    if kind == "image":
        return ImageBlock(data=str(_field(block, "data") or ""), mime_type=str(_field(block, "mimeType") or ""))

    if kind == "resource":
        resource = _field(block, "resource")
        return ResourceBlock(
            uri=str(_field(resource, "uri") or ""),
            text=_field(resource, "text"),
            blob=_field(resource, "blob"),
            mime_type=_field(resource, "mimeType"),
        )

    if kind == "resource_link":
        return ResourceBlock(uri=str(_field(block, "uri") or ""), mime_type=_field(block, "mimeType"))

    if isinstance(block, dict):
        payload = dict(block)
    elif hasattr(block, "model_dump"):
        payload = block.model_dump(mode="json", exclude_none=True)
    else:
        payload = {"type": str(kind or "unknown"), "value": str(block)}
    return RawBlock(payload=payload)
