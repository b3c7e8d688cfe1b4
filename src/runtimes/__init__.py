"""Language runtimes, codecs and cross-language converters."""

from __future__ import annotations

from runtimes.base import EvaluationRequest, LanguageRuntime, check_readable
from runtimes.codecs import CODECS, Codec, codec_for
from runtimes.hooks import resolve_hook
from runtimes.python_runtime import PythonRuntime
from runtimes.registry import (
    Converter,
    ConverterRegistry,
    RuntimeRegistry,
    bridge_input,
    default_converters,
    default_runtimes,
    json_bridge,
)
from runtimes.script_runtime import JuliaRuntime, RRuntime, ScriptRuntime

__all__ = [
    "CODECS",
    "Codec",
    "Converter",
    "ConverterRegistry",
    "EvaluationRequest",
    "JuliaRuntime",
    "LanguageRuntime",
    "PythonRuntime",
    "RRuntime",
    "RuntimeRegistry",
    "ScriptRuntime",
    "bridge_input",
    "check_readable",
    "codec_for",
    "default_converters",
    "default_runtimes",
    "json_bridge",
    "resolve_hook",
]
