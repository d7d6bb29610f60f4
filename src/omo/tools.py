"""Tool definitions, the tool registry, and the invocation gateway."""

import inspect
import json
import logging
import re
from typing import Any, Callable

from pydantic import BaseModel, Field

from omo.errors import ToolArgumentError

logger = logging.getLogger(__name__)

# Parameters injected by the registry rather than supplied by the model.
INJECTED_PARAMS = ("cwd",)

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    set: "array",
    dict: "object",
}


def _json_type(annotation) -> str:
    return _JSON_TYPES.get(annotation, "string")


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Pull parameter descriptions out of a Google, reST or numpy docstring."""
    doc = inspect.getdoc(func)
    if not doc:
        return {}
    lines = doc.splitlines()
    descriptions: dict[str, list] = {}

    # reST: ":param name: text"
    for line in lines:
        m = re.match(r"\s*:param\s+(?:\w+\s+)?(\w+):\s*(.*)", line)
        if m:
            descriptions[m.group(1)] = [m.group(2).strip()]
    if descriptions:
        return {k: "\n".join(v) for k, v in descriptions.items()}

    current = None
    section = None
    for line in lines:
        stripped = line.strip()
        if stripped in ("Args:", "Arguments:", "Parameters:"):
            section = "google"
            continue
        if stripped == "Parameters":
            section = "numpy_header"
            continue
        if section == "numpy_header":
            if set(stripped) == {"-"}:
                section = "numpy"
            continue
        if section is None:
            continue
        if not stripped:
            current = None
            if section == "google":
                section = None
            continue
        indent = len(line) - len(line.lstrip())
        if section == "google":
            if indent == 0:
                section = None
                current = None
                continue
            m = re.match(r"(\w+)(?:\s*\([^)]*\))?:\s*(.*)", stripped)
            if m and (current is None or indent <= descriptions[current][0]):
                current = m.group(1)
                descriptions[current] = [indent, m.group(2)]
            elif current is not None:
                descriptions[current].append(stripped)
        elif section == "numpy":
            m = re.match(r"(\w+)\s*(?::.*)?$", stripped)
            if indent == 0 and m:
                current = m.group(1)
                descriptions[current] = [indent]
            elif current is not None:
                descriptions[current].append(stripped)

    return {
        name: "\n".join(parts[1:]).strip()
        for name, parts in descriptions.items()
    }


def _build_parameters_schema(func: Callable) -> tuple[dict, list[str]]:
    signature = inspect.signature(func)
    descriptions = _parse_param_descriptions(func)
    properties = {}
    required = []
    for name, param in signature.parameters.items():
        if name in INJECTED_PARAMS:
            continue
        properties[name] = {
            "type": _json_type(param.annotation),
            "description": descriptions.get(name, ""),
        }
        if param.default is inspect.Parameter.empty:
            required.append(name)
    schema = {
        "type": "object",
        "properties": properties,
        "required": required,
    }
    return schema, required


class Tool(BaseModel):
    """A named local capability the model may call.

    Use the :func:`tool` decorator rather than constructing this
    directly.  If the wrapped function declares a ``cwd`` parameter the
    registry injects the conversation's working directory into it.
    """

    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    parameters_schema: dict
    model_config = {"arbitrary_types_allowed": True}

    def model_dump(self, **kwargs):
        """Return the Responses API tool schema."""
        return self.to_schema()

    def to_schema(self) -> dict:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters_schema,
            "strict": None,
        }

    @property
    def wants_cwd(self) -> bool:
        return "cwd" in inspect.signature(self.func).parameters

    async def __call__(self, **kwargs) -> Any:
        result = self.func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result


def tool(func: Callable | None = None, *, name: str | None = None,
         description: str | None = None):
    """Turn a function into a :class:`Tool`.

    Works bare (``@tool``) or with overrides
    (``@tool(name="x", description="y")``).
    """
    def wrap(f: Callable) -> Tool:
        schema, _ = _build_parameters_schema(f)
        doc = inspect.getdoc(f) or ""
        return Tool(
            func=f,
            name=name or f.__name__,
            description=description or doc.split("\n\n")[0].strip(),
            parameters_schema=schema,
        )

    if func is not None:
        return wrap(func)
    return wrap


class ToolRegistry:
    """Tools available to a conversation, looked up by exact name."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for t in tools or []:
            self.register(t)

    def register(self, t: Tool) -> None:
        if t.name in self._tools:
            logger.warning(f"Replacing registered tool {t.name}")
        self._tools[t.name] = t

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def list_schemas(self) -> list[dict]:
        return [t.to_schema() for t in self._tools.values()]

    async def execute(self, name: str, arguments: dict, cwd: str) -> str:
        """Run the named tool with *arguments*.

        Unknown names produce an error string rather than raising, so the
        conversation can continue.  Exceptions from the tool propagate.
        """
        tool_obj = self._tools.get(name)
        if tool_obj is None:
            logger.warning(f"Tool not found: {name}")
            return f'Error: Unknown tool "{name}"'

        params = dict(arguments)
        if tool_obj.wants_cwd:
            params["cwd"] = cwd
        logger.info(f"Calling {name} with {arguments}")
        result = await tool_obj(**params)
        if isinstance(result, str):
            return result
        return json.dumps(result)

    async def invoke(self, name: str, raw_arguments: str, cwd: str) -> str:
        """Parse a raw argument buffer and execute the named tool.

        Raises:
            ToolArgumentError: If *raw_arguments* is not a JSON object.
        """
        arguments = parse_arguments(raw_arguments)
        return await self.execute(name, arguments, cwd)


def parse_arguments(raw_arguments: str) -> dict:
    """Parse a tool-call argument buffer; an empty buffer means ``{}``."""
    if not raw_arguments.strip():
        return {}
    try:
        arguments = json.loads(raw_arguments)
    except json.JSONDecodeError as e:
        raise ToolArgumentError(f"Invalid JSON arguments: {e}") from e
    if not isinstance(arguments, dict):
        raise ToolArgumentError(
            f"Arguments must be a JSON object, got {type(arguments).__name__}"
        )
    return arguments
