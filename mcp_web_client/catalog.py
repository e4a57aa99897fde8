from __future__ import annotations

from typing import Any, Iterable, List, Tuple

from .models import ResourceDescriptor, ToolDescriptor
from .utils import first_attr


def tool_from_mcp(tool: Any) -> ToolDescriptor:
    """Reduce a transport tool object to {name, description, input_schema}."""
    schema = first_attr(tool, "input_schema", "inputSchema")
    return ToolDescriptor(
        name=tool.name,
        description=getattr(tool, "description", None) or "",
        input_schema=dict(schema) if schema else {"type": "object", "properties": {}},
    )


def resource_from_mcp(resource: Any) -> ResourceDescriptor:
    return ResourceDescriptor(
        uri=str(resource.uri),
        name=getattr(resource, "name", None) or "",
        description=getattr(resource, "description", None) or "",
    )


class ToolCatalog:
    """Tools and resources advertised by the MCP server for this process."""

    def __init__(self) -> None:
        self._tools: Tuple[ToolDescriptor, ...] = ()
        self._resources: Tuple[ResourceDescriptor, ...] = ()
        self._populated = False

    @property
    def is_populated(self) -> bool:
        return self._populated

    def populate(self, tools: Iterable[ToolDescriptor], resources: Iterable[ResourceDescriptor]) -> None:
        # Replace wholesale so readers never see a half-written catalog.
        self._tools = tuple(tools)
        self._resources = tuple(resources)
        self._populated = True

    def clear(self) -> None:
        self._tools = ()
        self._resources = ()
        self._populated = False

    def snapshot(self) -> Tuple[Tuple[ToolDescriptor, ...], Tuple[ResourceDescriptor, ...]]:
        return self._tools, self._resources

    def resource_uris(self) -> List[str]:
        return [resource.uri for resource in self._resources]
