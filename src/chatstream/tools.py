import inspect
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class Tool(BaseModel):
    """A callable the provider may invoke while streaming a response.

    The schema is derived from the function signature and docstring.
    Calling :meth:`invoke` never raises; failures are reported in the
    returned result envelope.
    """

    # Define as fields but exclude from serialization
    func: Callable = Field(exclude=True)
    name: str = Field(exclude=True)
    model_config = {"arbitrary_types_allowed": True}

    def __init__(self, func: Callable):
        super().__init__(func=func, name=func.__name__)

    def model_dump(self, **kwargs):
        """Return the JSON schema instead of internal attributes."""
        return self.get_schema()

    def model_dump_json(self, **kwargs):
        return json.dumps(self.get_schema())

    def normalize_to_json_type(self, annotation: Any) -> str:
        type_mapping = {
            'str': 'string',
            'int': 'integer',
            'float': 'number',
            'bool': 'boolean',
            'NoneType': 'null',
            'dict': 'object',
            'list': 'array',
            'tuple': 'array',
            'set': 'array',
        }
        return type_mapping.get(getattr(annotation, "__name__", ""), 'string')

    def parse_properties(self) -> dict[str, dict[str, str]]:
        signature = inspect.signature(self.func)
        return {
            param_name: {
                "type": self.normalize_to_json_type(param.annotation),
                "description": "",
            }
            for param_name, param in signature.parameters.items()
        }

    def get_required_params(self) -> list[str]:
        signature = inspect.signature(self.func)
        return [
            name
            for name, param in signature.parameters.items()
            if param.default == inspect.Parameter.empty
        ]

    def get_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.func.__doc__,
                "parameters": {
                    "type": "object",
                    "properties": self.parse_properties(),
                    "required": self.get_required_params(),
                },
            },
        }

    async def invoke(self, args: dict[str, Any]) -> dict[str, Any]:
        """Run the tool and wrap the outcome in a result envelope.

        Returns ``{"success": True, "data": ...}`` or
        ``{"success": False, "error": ...}``, both with ``metadata``
        recording execution time, timestamp and tool name.
        """
        started = time.monotonic()
        try:
            output = self.func(**args)
            if inspect.isawaitable(output):
                output = await output
            envelope: dict[str, Any] = {"success": True, "data": output}
        except Exception as e:
            logger.error(f"Tool {self.name} raised: {e}")
            envelope = {"success": False, "error": str(e)}
        envelope["metadata"] = {
            "executionTime": int((time.monotonic() - started) * 1000),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "toolName": self.name,
        }
        return envelope


def tool(func: Callable) -> Tool:
    """Decorator turning a plain or async function into a :class:`Tool`."""
    return Tool(func)
