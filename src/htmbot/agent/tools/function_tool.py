"""
Typed function tools.

Wraps an async function taking a pydantic model as an ILLMTool. The JSON
schema sent to the model is derived from the argument model and the raw
argument string is validated against it before the function runs.

Usage:
    class WeatherArgs(BaseModel):
        city: str = Field(description="City name")

    async def get_weather(args: WeatherArgs) -> dict:
        return {"city": args.city, "forecast": "sunny"}

    tool = FunctionTool(
        name="get-weather",
        description="Look up the weather for a city",
        args_model=WeatherArgs,
        func=get_weather,
    )
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel

from ..domain.ports import ILLMTool

logger = logging.getLogger(__name__)


class FunctionTool(ILLMTool):
    """An ILLMTool backed by an async function and a pydantic argument model.

    Non-string return values are JSON encoded before being handed back to
    the model. Validation errors propagate like any other tool failure.
    """

    def __init__(
        self,
        name: str,
        description: str,
        args_model: type[BaseModel],
        func: Callable[[Any], Awaitable[Any]],
        parameters: Optional[dict[str, Any]] = None,
    ):
        if not name:
            raise ValueError("tool name is required")
        self._name = name
        self._description = description
        self._args_model = args_model
        self._func = func
        self._parameters = parameters

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> dict[str, Any]:
        if self._parameters is not None:
            return self._parameters
        schema = self._args_model.model_json_schema()
        schema.pop("title", None)
        return schema

    def parse_arguments(self, arguments: str) -> BaseModel:
        """Validate the provider's raw argument string.

        An empty string is treated as an empty JSON object.
        """
        return self._args_model.model_validate_json(arguments or "{}")

    async def execute(self, arguments: str) -> str:
        args = self.parse_arguments(arguments)
        logger.debug(f"Calling tool {self.name} with {args!r}")
        result = await self._func(args)
        if isinstance(result, str):
            return result
        return json.dumps(result, default=str)
