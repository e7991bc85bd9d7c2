from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type, Union

from mcp import types
from pydantic import BaseModel, ValidationError

from flights_ui.errors import AssetLoadError, ClientError, OutputValidationError, ToolExecutionError
from flights_ui.rendering import UIResource

logger = logging.getLogger(__name__)

EMPTY_INPUT_SCHEMA: Dict[str, Any] = {"type": "object", "properties": {}}


class DuplicateToolError(ClientError):
    pass


class UnknownToolError(ClientError):
    pass


class InputValidationError(ClientError):
    def __init__(self, tool_name: str, error: ValidationError):
        self.tool_name = tool_name
        self.errors = error.errors(include_url=False)
        details = "; ".join(
            f"{'.'.join(str(part) for part in e['loc']) or '<input>'}: {e['msg']}" for e in self.errors
        )
        super().__init__(f"Invalid input for tool '{tool_name}': {details}")


@dataclass(frozen=True)
class TextItem:
    text: str


ContentItem = Union[TextItem, UIResource]


@dataclass
class ResponseEnvelope:
    content: List[ContentItem] = field(default_factory=list)
    structured_content: Optional[Dict[str, Any]] = None

    def content_blocks(self) -> List[Union[types.TextContent, types.EmbeddedResource]]:
        blocks: List[Union[types.TextContent, types.EmbeddedResource]] = []
        for item in self.content:
            if isinstance(item, TextItem):
                blocks.append(types.TextContent(type="text", text=item.text))
            else:
                blocks.append(item.to_embedded_resource())
        return blocks


Handler = Callable[[Optional[BaseModel]], ResponseEnvelope]


@dataclass(frozen=True)
class ToolDescriptor:
    """A named tool: its schemas and the handler that produces its response.

    Tools without an ``input_model`` take no declared input; their handler is
    called with ``None`` and any arguments the client sends are ignored.
    """
    name: str
    title: str
    description: str
    handler: Handler
    input_model: Optional[Type[BaseModel]] = None
    output_model: Optional[Type[BaseModel]] = None

    @property
    def input_schema(self) -> Dict[str, Any]:
        if self.input_model is None:
            return dict(EMPTY_INPUT_SCHEMA)
        return self.input_model.model_json_schema(by_alias=True)

    @property
    def output_schema(self) -> Optional[Dict[str, Any]]:
        if self.output_model is None:
            return None
        return self.output_model.model_json_schema(by_alias=True)

    def to_mcp_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            title=self.title,
            description=self.description,
            inputSchema=self.input_schema,
            outputSchema=self.output_schema,
        )


class ToolRegistry:
    """Tools available to one session, keyed by name."""

    def __init__(self):
        self._tools: Dict[str, ToolDescriptor] = {}

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            raise DuplicateToolError(f"Tool '{descriptor.name}' is already registered")
        self._tools[descriptor.name] = descriptor

    def get(self, name: str) -> ToolDescriptor:
        descriptor = self._tools.get(name)
        if descriptor is None:
            raise UnknownToolError(f"Unknown tool: {name}")
        return descriptor

    def list_tools(self) -> List[ToolDescriptor]:
        return list(self._tools.values())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def invoke(self, name: str, raw_input: Optional[Dict[str, Any]] = None) -> ResponseEnvelope:
        descriptor = self.get(name)
        params = self._validate_input(descriptor, raw_input or {})

        try:
            envelope = descriptor.handler(params)
        except AssetLoadError as e:
            logger.error("Tool %s failed to load asset %s: %s", name, e.path, e)
            raise ToolExecutionError(f"Tool '{name}' failed: {e}") from e
        except Exception as e:
            logger.exception("Tool %s raised an unexpected error", name)
            raise ToolExecutionError(f"Tool '{name}' failed due to an internal error") from e

        self._validate_output(descriptor, envelope)
        return envelope

    @staticmethod
    def _validate_input(descriptor: ToolDescriptor, raw_input: Dict[str, Any]) -> Optional[BaseModel]:
        if descriptor.input_model is None:
            return None
        try:
            return descriptor.input_model.model_validate(raw_input)
        except ValidationError as e:
            raise InputValidationError(descriptor.name, e) from e

    @staticmethod
    def _validate_output(descriptor: ToolDescriptor, envelope: ResponseEnvelope) -> None:
        if descriptor.output_model is None:
            return
        if envelope.structured_content is None:
            raise OutputValidationError(
                f"Tool '{descriptor.name}' declares an output schema but returned no structured content"
            )
        try:
            descriptor.output_model.model_validate(envelope.structured_content)
        except ValidationError as e:
            raise OutputValidationError(
                f"Tool '{descriptor.name}' returned structured content that does not match its output schema: {e}"
            ) from e
