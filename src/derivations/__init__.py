"""Derivation model: declarations, builders and pipeline loaders."""

from __future__ import annotations

from derivations.builders import (
    convert,
    derivation,
    file_derivation,
    jl_derivation,
    jl_file,
    make_pipeline,
    py_derivation,
    py_file,
    py_to_r,
    r_derivation,
    r_file,
    r_to_py,
)
from derivations.loader import load_pipeline, load_pipeline_file, load_pipeline_module
from derivations.model import (
    Conversion,
    Derivation,
    DerivationBody,
    Expression,
    FileImport,
    Language,
    Pipeline,
    SerializationHooks,
)

__all__ = [
    "Conversion",
    "Derivation",
    "DerivationBody",
    "Expression",
    "FileImport",
    "Language",
    "Pipeline",
    "SerializationHooks",
    "convert",
    "derivation",
    "file_derivation",
    "jl_derivation",
    "jl_file",
    "load_pipeline",
    "load_pipeline_file",
    "load_pipeline_module",
    "make_pipeline",
    "py_derivation",
    "py_file",
    "py_to_r",
    "r_derivation",
    "r_file",
    "r_to_py",
]
