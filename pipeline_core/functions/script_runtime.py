"""
Script runtime for transformation nodes.

A transformation's ``python_script`` defines ``run(message)``. The source is
compiled once when the processor starts and executed in a fresh namespace for
every message, so no state survives between messages.

Scripts without a ``run`` function are wrapped: their body operates on
``message`` and whatever it leaves in ``result`` (or the message itself) is
returned.

The restricted builtins table and the import allow-list keep honest scripts
away from files, processes and the network. They are not a security
boundary: scripts run in-process, so only trusted authors should be allowed
to edit them. Attribute names starting with a double underscore are refused
at compile time and by ``getattr``/``hasattr`` to close the usual
``().__class__.__subclasses__()`` walks.
"""

import ast
import asyncio
import builtins
import copy
import datetime
import json
import logging
import math
import re
import textwrap
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

ALLOWED_MODULES = {
    "json": json,
    "math": math,
    "re": re,
    "datetime": datetime,
}

SAFE_BUILTINS = (
    "abs", "all", "any", "bool", "dict", "divmod", "enumerate", "filter", "float",
    "format", "frozenset", "int", "isinstance", "issubclass", "iter", "len", "list",
    "map", "max", "min", "next", "pow", "range", "repr", "reversed", "round", "set",
    "slice", "sorted", "str", "sum", "tuple", "zip", "print",
    "Exception", "ValueError", "TypeError", "KeyError", "IndexError", "ZeroDivisionError",
    "ArithmeticError", "RuntimeError", "StopIteration", "True", "False", "None",
)


class ScriptError(Exception):
    """Raised when a transformation script fails."""


class ScriptCompileError(ScriptError):
    """Raised when a script cannot be compiled or does not expose a usable ``run``."""


class ScriptTimeoutError(ScriptError):
    """Raised when a single invocation exceeds its time budget."""


def _restricted_import(name, globals=None, locals=None, fromlist=(), level=0):
    root = name.split(".")[0]
    if level != 0 or root not in ALLOWED_MODULES:
        raise ImportError(f"Import of '{name}' is not allowed in pipeline scripts")
    return builtins.__import__(name, globals, locals, fromlist, level)


def _check_attribute(name: str) -> None:
    if isinstance(name, str) and name.startswith("__"):
        raise AttributeError(f"Access to '{name}' is not allowed in pipeline scripts")


def _restricted_getattr(obj, name, *default):
    _check_attribute(name)
    return getattr(obj, name, *default)


def _restricted_hasattr(obj, name):
    _check_attribute(name)
    return hasattr(obj, name)


def build_builtins() -> Dict[str, Any]:
    table = {name: getattr(builtins, name) for name in SAFE_BUILTINS if hasattr(builtins, name)}
    table["getattr"] = _restricted_getattr
    table["hasattr"] = _restricted_hasattr
    table["__import__"] = _restricted_import
    table["__build_class__"] = builtins.__build_class__
    return table


def wrap_script(source: str) -> str:
    """Turn a bare script body into a ``run(message)`` function."""
    body = textwrap.indent(textwrap.dedent(source), "    ")
    return (
        "def run(message):\n"
        "    input_data = message\n"
        "    result = message\n"
        f"{body}\n"
        "    return result\n"
    )


def normalize_result(value: Any) -> List[Any]:
    """
    Map a ``run`` return value to outgoing messages.

    dict -> one message, list -> one message per element, None -> filtered out.
    Any other value is emitted as a single message.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return [item for item in value if item is not None]
    return [value]


class ScriptRuntime:
    """Compiled, sandboxed transformation script."""

    def __init__(self, source: str, name: str = "<transformation>", timeout: float = 5.0):
        self.source = source
        self.name = name
        self.timeout = timeout
        self._code = None

    @property
    def is_compiled(self) -> bool:
        return self._code is not None

    def compile(self) -> None:
        """
        Compile the script.

        Raises:
            ScriptCompileError: On syntax errors, double-underscore attribute access,
                or when ``run`` is a coroutine function
        """
        if not self.source or not self.source.strip():
            raise ScriptCompileError(f"{self.name}: script is empty")
        try:
            tree = ast.parse(self.source, filename=self.name)
        except SyntaxError as e:
            raise ScriptCompileError(f"{self.name}: syntax error at line {e.lineno}: {e.msg}") from e

        for node in ast.walk(tree):
            if isinstance(node, ast.Attribute) and node.attr.startswith("__"):
                raise ScriptCompileError(
                    f"{self.name}: access to '{node.attr}' is not allowed (line {node.lineno})"
                )

        run_defs = [
            node for node in tree.body
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and node.name == "run"
        ]
        source = self.source
        if not run_defs:
            source = wrap_script(self.source)
            logger.debug(f"{self.name}: no run() defined, wrapping script body")
        elif isinstance(run_defs[-1], ast.AsyncFunctionDef):
            raise ScriptCompileError(f"{self.name}: run() must be a regular function, not async")

        try:
            self._code = compile(source, self.name, "exec")
        except SyntaxError as e:
            raise ScriptCompileError(f"{self.name}: syntax error at line {e.lineno}: {e.msg}") from e

    def invoke(self, message: Any) -> List[Any]:
        """Run the script once, synchronously, against a private copy of ``message``."""
        if self._code is None:
            self.compile()
        namespace: Dict[str, Any] = {"__builtins__": build_builtins(), "__name__": "pipeline_script"}
        namespace.update(ALLOWED_MODULES)
        exec(self._code, namespace)
        run_func = namespace.get("run")
        if not callable(run_func):
            raise ScriptError(f"{self.name}: script must define a 'run' function")
        return normalize_result(run_func(copy.deepcopy(message)))

    async def execute(self, message: Any, timeout: Optional[float] = None) -> List[Any]:
        """
        Run the script in a worker thread, bounded by the configured timeout.

        Raises:
            ScriptTimeoutError: If the invocation does not finish in time
            ScriptError: If the script raises
        """
        limit = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self.invoke, message)
        try:
            return await asyncio.wait_for(future, timeout=limit)
        except asyncio.TimeoutError as e:
            raise ScriptTimeoutError(f"{self.name}: script exceeded {limit}s") from e
        except ScriptError:
            raise
        except Exception as e:
            raise ScriptError(f"{self.name}: {type(e).__name__}: {e}") from e
