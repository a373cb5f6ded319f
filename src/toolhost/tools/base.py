"""Tool — a named, schema-described unit of work with one async entry point."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel

from toolhost.protocol.models import ToolDescriptor


class Tool(ABC):
    """Base class for every tool served by the router.

    Subclasses declare ``name``, ``description`` and a pydantic
    ``input_model``; the router validates raw arguments against that model
    before calling :meth:`run`.  The published ``inputSchema`` is generated
    from the same model, so it accepts exactly what the handler accepts.

    :meth:`run` may return any JSON-serializable value, or a
    :class:`~toolhost.protocol.models.ToolCallResult` to report a structured
    failure without raising.
    """

    name: ClassVar[str]
    description: ClassVar[str] = ""
    input_model: ClassVar[type[BaseModel]]

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            input_schema=self.input_model.model_json_schema(),
        )

    @abstractmethod
    async def run(self, arguments: Any) -> Any:
        """Execute the tool with validated *arguments* (an ``input_model``)."""
        ...
