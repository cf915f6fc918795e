import asyncio
import inspect
import json
import logging
import re
from typing import Any, Callable

from pydantic import BaseModel, Field

from gurgeh.errors import LLMRecoverableError, ToolExecutionError, UnknownToolError

logger = logging.getLogger(__name__)


_JSON_TYPES = {
    'str': 'string',
    'int': 'integer',
    'float': 'number',
    'bool': 'boolean',
    'NoneType': 'null',
    'dict': 'object',
    'list': 'array',
    'tuple': 'array',  # closest equivalent
    'set': 'array',    # closest equivalent
}


def _normalize_to_json_type(annotation: Any) -> str:
    name = getattr(annotation, "__name__", None)
    return _JSON_TYPES.get(name, 'string')


def _build_parameters_schema(func: Callable) -> tuple[dict, list[str]]:
    """Derive a JSON schema from a function signature.

    Returns the schema and the list of required parameter names.
    """
    signature = inspect.signature(func)
    properties = {}
    required = []
    for param_name, param in signature.parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        properties[param_name] = {
            "type": _normalize_to_json_type(param.annotation),
            "description": "",
        }
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
    schema = {
        "type": "object",
        "properties": properties,
        "required": required,
    }
    return schema, required


def _to_snake_case(name: str) -> str:
    """``openingName`` -> ``opening_name``, ``FEN`` -> ``fen``. Snake-case names pass through."""
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).lower()


class ToolResult(BaseModel):
    """Outcome of one tool call, always serializable for the transcript."""

    success: bool
    payload: dict = Field(default_factory=dict)

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(success=False, payload={"error": error})

    @classmethod
    def from_output(cls, output: Any) -> "ToolResult":
        if isinstance(output, dict):
            payload = dict(output)
            success = payload.pop("success", True) is not False
            return cls(success=success, payload=payload)
        return cls(success=True, payload={"result": output})

    def as_dict(self) -> dict:
        return {"success": self.success, **self.payload}

    def to_content(self) -> str:
        return json.dumps(self.as_dict(), default=str)


class Tool(BaseModel):
    """A named capability the model may call.

    ``model_dump()`` returns the OpenAI function schema rather than the
    model's fields, so a list of tools can be sent to a provider as is.
    """

    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    parameters_schema: dict = Field(default_factory=dict)
    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    def model_dump(self, **kwargs):
        """Override to return the JSON schema instead of internal attributes"""
        return self.get_schema()

    def model_dump_json(self, **kwargs):
        """Override JSON serialization"""
        return json.dumps(self.get_schema())

    def get_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema,
            }
        }

    def required_params(self) -> list[str]:
        return list(self.parameters_schema.get("required", []))

    def accepted_params(self) -> set[str] | None:
        """Keyword names the executor takes, or ``None`` if it takes ``**kwargs``."""
        params = inspect.signature(self.func).parameters.values()
        if any(p.kind is p.VAR_KEYWORD for p in params):
            return None
        return {
            p.name for p in params
            if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)
        }

    async def __call__(self, **kwargs) -> Any:
        result = self.func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result


def tool(
    func: Callable | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    parameters_schema: dict | None = None,
):
    """Turn a function into a :class:`Tool`.

    Usable bare (``@tool``) or with overrides
    (``@tool(name="getPlayerStats", parameters_schema={...})``). Without
    an explicit schema one is derived from the signature; the docstring
    becomes the description.
    """
    def wrap(f: Callable) -> Tool:
        schema = parameters_schema
        if schema is None:
            schema, _ = _build_parameters_schema(f)
        return Tool(
            func=f,
            name=name or f.__name__,
            description=description if description is not None else inspect.getdoc(f) or "",
            parameters_schema=schema,
        )

    if func is not None:
        return wrap(func)
    return wrap


class ToolRegistry:
    """Read-only mapping from tool name to :class:`Tool`.

    Safe to share between concurrent exchanges.

    Args:
        tools: Tools to register. Names must be unique.

    Raises:
        ValueError: If two tools share a name.
    """

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for t in tools or []:
            if t.name in self._tools:
                raise ValueError(f"Duplicate tool name: '{t.name}'")
            self._tools[t.name] = t

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def lookup(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def schemas(self) -> list[dict]:
        return [t.model_dump() for t in self._tools.values()]

    async def execute(
        self, name: str, arguments: dict, timeout: float | None = None,
    ) -> ToolResult:
        """Run one tool call and report its outcome.

        Never raises for tool-level problems: unknown names, missing
        arguments, executor exceptions and timeouts all become a failed
        :class:`ToolResult`. If the surrounding task is cancelled, the
        executor is left to finish on its own and the cancellation
        propagates.
        """
        tool_obj = self.lookup(name)
        if tool_obj is None:
            logger.warning(f"Tool not found: {name}")
            return ToolResult.failure(str(UnknownToolError(name)))

        missing = [p for p in tool_obj.required_params() if p not in arguments]
        if missing:
            logger.warning(f"Missing arguments for {name}: {missing}")
            return ToolResult.failure(
                f"Missing required arguments for {name}: {', '.join(missing)}"
            )

        kwargs = {_to_snake_case(k): v for k, v in arguments.items()}
        accepted = tool_obj.accepted_params()
        if accepted is not None:
            ignored = sorted(k for k in kwargs if k not in accepted)
            if ignored:
                logger.debug(f"Ignoring unexpected arguments for {name}: {ignored}")
                kwargs = {k: v for k, v in kwargs.items() if k in accepted}
        logger.info(f"Calling {name} with {kwargs}")

        task = asyncio.ensure_future(tool_obj(**kwargs))
        try:
            output = await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.CancelledError:
            task.add_done_callback(_log_orphaned_result)
            raise
        except asyncio.TimeoutError:
            task.cancel()
            logger.warning(f"Tool {name} timed out after {timeout}s")
            return ToolResult.failure(
                str(ToolExecutionError(name, f"timed out after {timeout}s"))
            )
        except LLMRecoverableError as e:
            logger.info(f"Tool {name} requested retry: {e}")
            return ToolResult.failure(str(e))
        except Exception as e:
            logger.error(f"Tool {name} raised: {e}")
            return ToolResult.failure(str(ToolExecutionError(name, str(e))))

        return ToolResult.from_output(output)


def _log_orphaned_result(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    if task.exception() is not None:
        logger.warning(f"Tool finished after cancellation with error: {task.exception()}")
