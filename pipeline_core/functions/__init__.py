"""
Sandboxed execution of transformation scripts.
"""

from .script_runtime import (
    ScriptCompileError,
    ScriptError,
    ScriptRuntime,
    ScriptTimeoutError,
    normalize_result,
    wrap_script,
)

__all__ = [
    "ScriptCompileError",
    "ScriptError",
    "ScriptRuntime",
    "ScriptTimeoutError",
    "normalize_result",
    "wrap_script",
]
