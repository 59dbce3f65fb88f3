"""
Base Tool - Abstract base class for tools exposed to the agent.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


@dataclass
class ToolResult:
    """Result from tool execution, in the shape the agent runtime consumes."""

    content: List[Dict[str, Any]] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return bool(self.details.get("error"))

    @property
    def text(self) -> str:
        """All text blocks joined by newlines."""
        return "\n".join(c["text"] for c in self.content if c.get("type") == "text")

    @classmethod
    def error(cls, message: str, **details: Any) -> "ToolResult":
        return cls(content=[{"type": "text", "text": message}], details={"error": True, **details})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "content": list(self.content),
            "details": dict(self.details),
        }


class ToolDefinition(BaseModel):
    """Tool definition for registration."""

    name: str
    label: str
    description: str
    parameters: Dict[str, Any] = Field(default_factory=dict)  # JSON Schema
    endpoint: Optional[str] = None


class BaseTool(ABC):
    """
    Abstract base class for tools.

    All tools must implement:
    - definition: Tool metadata
    - invoke: Core execution logic
    """

    @property
    @abstractmethod
    def definition(self) -> ToolDefinition:
        """Get tool definition."""
        pass

    @property
    def name(self) -> str:
        return self.definition.name

    @abstractmethod
    async def invoke(self, args: Dict[str, Any], cancel: Optional[asyncio.Event] = None) -> ToolResult:
        """
        Execute the tool.

        Args:
            args: Tool-specific parameters
            cancel: Optional event; setting it aborts the call

        Returns:
            ToolResult with execution outcome
        """
        pass

    def validate_params(self, params: Dict[str, Any]) -> Optional[str]:
        """
        Validate input parameters.

        Args:
            params: Input parameters

        Returns:
            Error message if invalid, None if valid
        """
        schema = self.definition.parameters
        required = schema.get("required", [])

        for param in required:
            if param not in params:
                return f"Missing required parameter: {param}"

        return None
