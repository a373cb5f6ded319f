"""ToolRouter — maps tool names to tools and serves list/dispatch."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from toolhost.errors import ToolCallError, ToolRegistrationError
from toolhost.protocol.models import CallError, ToolCallResult, ToolDescriptor
from toolhost.utils.telemetry import ATTR_TOOL_ERROR_CODE, ATTR_TOOL_NAME, get_tracer

if TYPE_CHECKING:
    from collections.abc import Iterable

    from toolhost.system.backend import SystemCommand
    from toolhost.tools.base import Tool

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class ToolRouter:
    """Name-to-tool registry with structured, never-raising dispatch.

    Tools are registered once at startup, before any connection is served,
    and the registry is not mutated afterwards.

    Usage::

        router = ToolRouter()
        router.register(EchoMessageTool())

        descriptors = router.list()
        result = await router.dispatch("echo_message", {"message": "hi"})
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def register(self, tool: Tool) -> None:
        """Add *tool*; its name must not already be registered."""
        if tool.name in self._tools:
            raise ToolRegistrationError(tool.name)
        self._tools[tool.name] = tool
        logger.debug("Registered tool %s", tool.name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list(self) -> list[ToolDescriptor]:
        """Return every descriptor in registration order."""
        return [tool.descriptor() for tool in self._tools.values()]

    async def dispatch(self, name: str, arguments: dict[str, Any] | None = None) -> ToolCallResult:
        """Validate *arguments* and run the tool called *name*.

        Never raises: an unknown name, invalid arguments, and handler
        faults all come back as a failed :class:`ToolCallResult`.
        """
        with _tracer.start_as_current_span("toolhost.tool.call") as span:
            span.set_attribute(ATTR_TOOL_NAME, name)
            result = await self._dispatch(name, arguments or {})
            if result.error is not None:
                span.set_attribute(ATTR_TOOL_ERROR_CODE, int(result.error.code))
            return result

    async def _dispatch(self, name: str, arguments: dict[str, Any]) -> ToolCallResult:
        tool = self._tools.get(name)
        if tool is None:
            logger.info("Call to unknown tool %s", name)
            return ToolCallResult.failure(CallError.method_not_found(name))

        try:
            parsed = tool.input_model.model_validate(arguments)
        except ValidationError as exc:
            return ToolCallResult.failure(
                CallError.invalid_params(
                    f"Invalid arguments for {name}: {exc.error_count()} validation error(s)",
                    data=_validation_details(exc),
                )
            )

        logger.info("Calling tool %s", name)
        try:
            value = await tool.run(parsed)
        except ToolCallError as exc:
            return ToolCallResult.failure(CallError(code=exc.code, message=exc.message, data=exc.data))
        except Exception as exc:
            logger.exception("Tool %s failed", name)
            return ToolCallResult.failure(
                CallError.internal(
                    f"Tool {name} failed: {exc}",
                    data={"error": str(exc), "type": type(exc).__name__},
                )
            )

        if isinstance(value, ToolCallResult):
            if value.error is not None:
                logger.info("Tool %s reported error: %s", name, value.error.message)
            return value
        return ToolCallResult.success(value)


def _validation_details(exc: ValidationError) -> list[dict[str, Any]]:
    """JSON-safe summary of pydantic validation errors."""
    return [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in exc.errors(include_url=False)
    ]


def build_default_router(backend: SystemCommand) -> ToolRouter:
    """Build the server's router: built-in tools, then system tools."""
    from toolhost.tools.builtin import build_default_tools
    from toolhost.tools.system import build_system_tools

    return ToolRouter([*build_default_tools(), *build_system_tools(backend)])
