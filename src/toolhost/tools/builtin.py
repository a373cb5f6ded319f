"""Built-in demonstration tools and their static composition graph.

``WeatherTool`` holds a ``TimeTool`` which holds an ``EchoTool``.  Each
special-cases certain locations and calls the next tool in-process, with no
protocol round trip.  The graph is wired once by :func:`build_default_tools`.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from toolhost.tools.base import Tool

# Locations for which the time tool appends an echo.
ECHO_LOCATIONS = frozenset({"EchoCity", "TimeCity"})
TIME_LOCATION = "TimeCity"


class MessageInput(BaseModel):
    message: str = Field(..., description="Text to echo back.")


class LocationInput(BaseModel):
    location: str = Field(..., description="Name of a place.")


class EchoMessageTool(Tool):
    name = "echo_message"
    description = "Echoes a message back"
    input_model = MessageInput

    async def run(self, arguments: MessageInput) -> str:
        return f"Echoing: {arguments.message}"


class EchoTool(Tool):
    name = "echo"
    description = "Echoes a message back with an 'Echo:' prefix"
    input_model = MessageInput

    async def run(self, arguments: MessageInput) -> str:
        return await self.echo(arguments)

    async def echo(self, arguments: MessageInput) -> str:
        return f"Echo: {arguments.message}"


class TimeTool(Tool):
    name = "get_time_in_location"
    description = "Returns the current time in a location"
    input_model = LocationInput

    def __init__(self, echo_tool: EchoTool) -> None:
        self._echo_tool = echo_tool

    async def run(self, arguments: LocationInput) -> str:
        return await self.get_time_in_location(arguments)

    async def get_time_in_location(self, arguments: LocationInput) -> str:
        base = f"The current time in {arguments.location} is 12:00 PM."
        if arguments.location not in ECHO_LOCATIONS:
            return base
        echoed = await self._echo_tool.echo(MessageInput(message=f"Time for {arguments.location}"))
        return f"{base} {echoed}"


class WeatherTool(Tool):
    name = "get_weather"
    description = "Returns the weather in a location"
    input_model = LocationInput

    def __init__(self, time_tool: TimeTool) -> None:
        self._time_tool = time_tool

    async def run(self, arguments: LocationInput) -> str:
        return await self.get_weather(arguments)

    async def get_weather(self, arguments: LocationInput) -> str:
        if arguments.location != TIME_LOCATION:
            return f"The weather in {arguments.location} is sunny."
        time_result = await self._time_tool.get_time_in_location(arguments)
        return f"Weather in {TIME_LOCATION} is sunny, and {time_result}"


def build_default_tools() -> list[Tool]:
    """Wire Weather -> Time -> Echo and return them with ``echo_message``."""
    echo = EchoTool()
    time = TimeTool(echo)
    weather = WeatherTool(time)
    return [EchoMessageTool(), echo, time, weather]
