"""Static inference of upstream references from derivation sources.

Python expressions are parsed with :mod:`ast`; every loaded name that is not
bound inside the expression itself counts as a reference. R and Julia sources
are tokenized with a regular expression after string literals and comments
are blanked out. Neither path evaluates or normalizes the source.
"""

from __future__ import annotations

import ast
import re
from collections.abc import Collection

from core.errors import DerivationError
from derivations.model import Derivation, Expression, Language

_R_STRIP_RE = re.compile(
    r"""
    "(?:[^"\\]|\\.)*"      # double-quoted string
    | '(?:[^'\\]|\\.)*'    # single-quoted string
    | \#[^\n]*             # comment
    """,
    re.VERBOSE,
)
_JULIA_STRIP_RE = re.compile(
    r'''
    """.*?"""              # triple-quoted string
    | "(?:[^"\\]|\\.)*"    # string
    | '(?:[^'\\]|\\.)'     # character literal
    | \#=.*?=\#            # block comment
    | \#[^\n]*             # line comment
    ''',
    re.VERBOSE | re.DOTALL,
)
# A leading `$`/`@` (R slot access) or `.` (Julia field access) marks a member
# name rather than a free variable.
_R_TOKEN_RE = re.compile(r"(?<![$@\w.])(?:`(?P<quoted>[^`]+)`|(?P<name>[A-Za-z.][\w.]*))")
_JULIA_TOKEN_RE = re.compile(r"(?<![.:\w])(?P<name>[A-Za-z_][\w!]*)")


def python_references(source: str, *, node: str | None = None) -> frozenset[str]:
    """Return free names loaded by a Python expression.

    Returns
    -------
    frozenset[str]
        Names read but not bound inside the expression.

    Raises
    ------
    DerivationError
        Raised when the source is not a valid Python expression.
    """
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as exc:
        msg = f"Invalid Python expression in {node!r}: {exc.msg} (line {exc.lineno})."
        raise DerivationError(msg, node=node) from exc
    loaded: set[str] = set()
    bound: set[str] = set()
    for item in ast.walk(tree):
        if isinstance(item, ast.Name):
            if isinstance(item.ctx, ast.Load):
                loaded.add(item.id)
            else:
                bound.add(item.id)
        elif isinstance(item, ast.arg):
            bound.add(item.arg)
    return frozenset(loaded - bound)


def r_references(source: str) -> frozenset[str]:
    """Return identifier tokens of an R source, ignoring strings and comments.

    Returns
    -------
    frozenset[str]
        Candidate identifiers.
    """
    stripped = _R_STRIP_RE.sub(" ", source)
    names: set[str] = set()
    for match in _R_TOKEN_RE.finditer(stripped):
        names.add(match.group("quoted") or match.group("name"))
    return frozenset(names)


def julia_references(source: str) -> frozenset[str]:
    """Return identifier tokens of a Julia source, ignoring strings and comments.

    Returns
    -------
    frozenset[str]
        Candidate identifiers.
    """
    stripped = _JULIA_STRIP_RE.sub(" ", source)
    return frozenset(match.group("name") for match in _JULIA_TOKEN_RE.finditer(stripped))


def source_references(
    source: str,
    language: Language,
    *,
    node: str | None = None,
) -> frozenset[str]:
    """Dispatch reference extraction on the source language.

    Returns
    -------
    frozenset[str]
        Candidate identifiers.
    """
    if language == Language.PYTHON:
        return python_references(source, node=node)
    if language == Language.R:
        return r_references(source)
    return julia_references(source)


def inferred_references(derivation: Derivation, known: Collection[str]) -> tuple[str, ...]:
    """Return derivation names referenced by an expression body.

    Only expression bodies are scanned. Self-references are ignored since a
    body that mentions its own name refers to something else in scope.

    Returns
    -------
    tuple[str, ...]
        Sorted referenced derivation names.
    """
    body = derivation.body
    if not isinstance(body, Expression):
        return ()
    candidates = source_references(body.source, derivation.language, node=derivation.name)
    return tuple(
        sorted(name for name in candidates if name in known and name != derivation.name)
    )


__all__ = [
    "inferred_references",
    "julia_references",
    "python_references",
    "r_references",
    "source_references",
]
