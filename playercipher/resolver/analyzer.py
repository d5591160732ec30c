"""
Static analysis of a player script.

Two artifacts are recovered without executing the script:

- the signature cipher: the function that splits the signature into
  characters, calls a few helpers of one object on it and joins it back.
  Each call becomes one ``CipherOperation``; each helper is classified
  once from the shape of its body.
- the n-parameter function: the body between ``var b=a.split("")`` and
  ``return b.join("")``, wrapped into a standalone function that the
  sandboxed evaluator can run.

Both scans are best-effort. A missing anchor yields ``None`` and a WARNING,
never an exception.
"""

import logging
import re

from pydantic import BaseModel, ConfigDict, Field

from ..models.cipher import (
    CachedPlayerProfile,
    CipherOperation,
    ReverseOperation,
    SpliceOperation,
    SwapOperation,
    UnknownOperation,
)
from ..models.enums import OperationKind
from ..utils.helpers import find_matching_bracket

logger = logging.getLogger(__name__)

N_FUNCTION_NAME = "processNParameter"

_CIPHER_FUNCTION_PATTERN = re.compile(
    r"(?P<name>[\w$]+)\s*=\s*function\(\s*(?P<arg>[\w$]+)\s*\)\s*\{\s*"
    r'(?P=arg)\s*=\s*(?P=arg)\.split\(\s*""\s*\)\s*;'
    r"(?P<body>.*?)"
    r'return\s+(?P=arg)\.join\(\s*""\s*\)'
)
_HELPER_CALL_PATTERN = re.compile(
    r'^[\w$]+(?:\.(?P<name>[\w$]+)|\["(?P<quoted>[\w$]+)"\])'
    r"\(\s*[\w$]+\s*(?:,\s*(?P<arg>-?\d+)\s*)?\)$"
)
# The player's own names come first; any other `var x=y.split("")` is a fallback.
_N_FUNCTION_ANCHORS = (
    re.compile(r'(?<![\w$])var\s+(?P<var>b)\s*=\s*(?P<arg>a)\.split\(\s*""\s*\)'),
    re.compile(r'(?<![\w$])var\s+(?P<var>[\w$]+)\s*=\s*(?P<arg>[\w$]+)\.split\(\s*""\s*\)'),
)


class AnalysisResult(BaseModel):
    """What a single analysis pass recovered from one player script."""

    model_config = ConfigDict(frozen=True)

    operations: tuple[CipherOperation, ...] = Field(default=())
    n_function_source: str | None = None
    cipher_found: bool = False
    n_function_found: bool = False

    def to_profile(self, player_version_id: str) -> CachedPlayerProfile:
        return CachedPlayerProfile(
            player_version_id=player_version_id,
            operations=self.operations,
            n_function_source=self.n_function_source,
        )


# ----------------------------------------------------------------------
# Signature cipher
# ----------------------------------------------------------------------


def _find_helper(script: str, helper: str) -> tuple[list[str], str] | None:
    """Return (params, body) of ``helper:function(a,b){...}``."""
    match = re.search(
        rf"(?<![\w$])[\"']?{re.escape(helper)}[\"']?\s*:\s*function\(\s*([\w$\s,]*)\)\s*\{{",
        script,
    )
    if not match:
        return None
    end = find_matching_bracket(script, match.end() - 1)
    if end < 0:
        return None
    params = [p.strip() for p in match.group(1).split(",") if p.strip()]
    return params, script[match.end() : end]


def classify_helper(params: list[str], body: str) -> OperationKind:
    """Recognize swap, splice and reverse helpers from their body."""
    if not params:
        return OperationKind.UNKNOWN
    arr = re.escape(params[0])
    num = re.escape(params[1]) if len(params) > 1 else None
    body = re.sub(r"\s+", "", body)

    if re.search(rf"{arr}\.reverse\(\)", body):
        return OperationKind.REVERSE
    if num and re.search(rf"{arr}\.splice\(0,{num}\)", body):
        return OperationKind.SPLICE
    if num and re.search(rf"var[\w$]+={arr}\[0\]", body) and f"{num}%{params[0]}.length" in body:
        return OperationKind.SWAP
    return OperationKind.UNKNOWN


def _make_operation(kind: OperationKind, argument: int) -> CipherOperation:
    if kind == OperationKind.SWAP:
        return SwapOperation(index=argument)
    if kind == OperationKind.SPLICE:
        return SpliceOperation(count=max(argument, 0))
    if kind == OperationKind.REVERSE:
        return ReverseOperation()
    return UnknownOperation()


def extract_cipher_operations(script: str) -> list[CipherOperation] | None:
    """
    Recover the signature cipher as an ordered list of operations.

    Returns None when the script has no cipher function.
    """
    match = None
    for line in script.splitlines():
        if 'split("")' not in line:
            continue
        match = _CIPHER_FUNCTION_PATTERN.search(line)
        if match:
            break
    if match is None:
        logger.warning("Signature cipher function not found in player script")
        return None

    logger.debug("Signature cipher function is %s", match.group("name"))

    kinds: dict[str, OperationKind] = {}
    operations: list[CipherOperation] = []

    for statement in match.group("body").split(";"):
        statement = statement.strip()
        if not statement:
            continue
        call = _HELPER_CALL_PATTERN.match(statement)
        if not call:
            logger.warning("Unrecognized cipher statement %r", statement)
            operations.append(UnknownOperation())
            continue

        helper = call.group("name") or call.group("quoted")
        if helper not in kinds:
            found = _find_helper(script, helper)
            kinds[helper] = classify_helper(*found) if found else OperationKind.UNKNOWN
            if kinds[helper] == OperationKind.UNKNOWN:
                logger.warning("Cipher helper %s has an unknown shape", helper)

        operations.append(_make_operation(kinds[helper], int(call.group("arg") or 0)))

    return operations


# ----------------------------------------------------------------------
# n parameter
# ----------------------------------------------------------------------


def extract_n_function(script: str) -> str | None:
    """
    Extract the n-parameter transform as standalone source of
    ``function processNParameter(a){...}``.
    """
    text = script.replace("\r", "").replace("\n", "")

    anchor = next(filter(None, (p.search(text) for p in _N_FUNCTION_ANCHORS)), None)
    if not anchor:
        logger.warning("n-parameter function anchor not found in player script")
        return None

    var, arg = anchor.group("var"), anchor.group("arg")
    terminator = re.compile(rf'return\s+{re.escape(var)}\.join\(\s*""\s*\)')
    end = terminator.search(text, anchor.end())
    if not end:
        logger.warning("n-parameter function terminator not found in player script")
        return None

    body = text[anchor.end() : end.start()]
    return (
        f"function {N_FUNCTION_NAME}({arg}){{"
        f'var {var}={arg}.split(""){body};'
        f'return {var}.join("")}}'
    )


def analyze(script: str) -> AnalysisResult:
    """Run both scans over a player script. Pure and deterministic."""
    operations = extract_cipher_operations(script)
    n_function = extract_n_function(script)
    return AnalysisResult(
        operations=tuple(operations or ()),
        n_function_source=n_function,
        cipher_found=operations is not None,
        n_function_found=n_function is not None,
    )
