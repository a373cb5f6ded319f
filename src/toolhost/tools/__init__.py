"""Tools and the router that serves them."""

from toolhost.tools.base import Tool
from toolhost.tools.builtin import (
    EchoMessageTool,
    EchoTool,
    TimeTool,
    WeatherTool,
    build_default_tools,
)
from toolhost.tools.router import ToolRouter, build_default_router
from toolhost.tools.system import SystemCommandTool, build_system_tools

__all__ = [
    "EchoMessageTool",
    "EchoTool",
    "SystemCommandTool",
    "TimeTool",
    "Tool",
    "ToolRouter",
    "WeatherTool",
    "build_default_router",
    "build_default_tools",
    "build_system_tools",
]
