"""
Sandboxed JavaScript evaluation for the player's n-parameter transform.

A small tree-walking interpreter over the subset of JavaScript the
n-parameter routine is written in:
- var/let/const declarations, assignments and compound assignments
- function declarations, function expressions and closures
- if/else, for, while, try/catch/finally, break, continue, throw
- arithmetic, bitwise, comparison, logical and ternary operators
- string and array methods (split, join, splice, reverse, push, slice, ...)
- Math.*, String.fromCharCode, parseInt

Only the supplied source and a fixed table of pure builtins are reachable.
There is no global object, no module loading and no I/O. Every run is
bounded by a step budget and a length budget on the strings and arrays it
builds, so a hostile or looping script ends in an error instead of hanging
the caller or exhausting its memory.
"""

import logging
import math
import re
from typing import Any
from urllib.parse import quote, unquote

from ..config import get_settings
from ..utils.helpers import find_matching_bracket
from .errors import EvaluationFailure

logger = logging.getLogger(__name__)

_NAME_RE = r"[a-zA-Z_$][\w$]*"
_NAME_PATTERN = re.compile(_NAME_RE)
_NUMBER_PATTERN = re.compile(
    r"0[xX][0-9a-fA-F]+|\d+(?:\.\d*)?(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?"
)
_FUNCTION_EXPR_PATTERN = re.compile(rf"function\s*({_NAME_RE})?\s*\(([^)]*)\)\s*\{{")
_FUNCTION_DECL_PATTERN = re.compile(rf"function\s+({_NAME_RE})\s*\(([^)]*)\)\s*\{{")
_BLOCK_STATEMENT_PATTERN = re.compile(r"(?:if|for|while|try|function|switch)\b|\{")
_CONTINUATION_PATTERN = re.compile(r"(?:else|catch|finally)\b")

_QUOTES = ('"', "'", "`")
_OPERATOR_CHARS = frozenset("=+-*/%&|^<>!~?:")

# Longest first, so that maximal munch picks ">>>=" before ">>" before ">".
_BINARY_OPERATORS = sorted(
    [
        ">>>=", "===", "!==", ">>>", "<<=", ">>=", "==", "!=", "<=", ">=", "&&", "||",
        "<<", ">>", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=",
        "=", "<", ">", "+", "-", "*", "/", "%", "&", "|", "^", "?", ":",
    ],
    key=len,
    reverse=True,
)
_ASSIGN_OPERATORS = frozenset(
    {"=", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<=", ">>=", ">>>="}
)
# Lowest precedence first.
_PRECEDENCE = (
    ("||",),
    ("&&",),
    ("|",),
    ("^",),
    ("&",),
    ("==", "!=", "===", "!=="),
    ("<", ">", "<=", ">="),
    ("<<", ">>", ">>>"),
    ("+", "-"),
    ("*", "/", "%"),
)

_STRING_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


class JSUndefined:
    """Represents JavaScript's undefined value."""

    def __repr__(self):
        return "undefined"

    def __bool__(self):
        return False


JS_UNDEFINED = JSUndefined()


class JSInterpreterError(Exception):
    pass


class BudgetExceeded(JSInterpreterError):
    """A resource budget ran out. Not catchable from JS."""


class StepLimitExceeded(BudgetExceeded):
    """Raised when a script runs past its step budget."""


class SizeLimitExceeded(BudgetExceeded):
    """Raised before a string or array would grow past the length budget."""


class JSThrow(JSInterpreterError):
    """A value thrown by the script itself."""

    def __init__(self, value: Any):
        super().__init__(f"Uncaught {_to_string(value)}")
        self.value = value


class JSBreak(Exception):
    pass


class JSContinue(Exception):
    pass


# Python-level faults a script can provoke with malformed input. Inside the
# interpreter they behave like JS TypeErrors.
_SCRIPT_FAULTS = (TypeError, ValueError, IndexError, KeyError, ZeroDivisionError, OverflowError)


# ----------------------------------------------------------------------
# Value semantics
# ----------------------------------------------------------------------


def _truthy(val: Any) -> bool:
    if val is None or val is JS_UNDEFINED or val is False:
        return False
    if isinstance(val, (int, float)):
        return val != 0 and not math.isnan(val)
    if isinstance(val, str):
        return val != ""
    return True


def _is_number(val: Any) -> bool:
    return isinstance(val, (int, float)) and not isinstance(val, bool)


def _normalize(num: Any) -> Any:
    """Collapse integral floats to int so they index lists and print like JS."""
    if isinstance(num, float) and num.is_integer():
        return int(num)
    return num


def _to_number(val: Any) -> int | float:
    if isinstance(val, bool):
        return int(val)
    if _is_number(val):
        return val
    if val is None:
        return 0
    if isinstance(val, str):
        text = val.strip()
        if not text:
            return 0
        try:
            return int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError:
            try:
                return _normalize(float(text))
            except ValueError:
                return math.nan
    if isinstance(val, list):
        if not val:
            return 0
        if len(val) == 1:
            return _to_number(val[0])
    return math.nan


def _to_int32(val: Any) -> int:
    num = _to_number(val)
    if isinstance(num, float) and (math.isnan(num) or math.isinf(num)):
        return 0
    num = int(num) & 0xFFFFFFFF
    return num - (1 << 32) if num >= (1 << 31) else num


def _to_uint32(val: Any) -> int:
    return _to_int32(val) & 0xFFFFFFFF


def _to_string(val: Any) -> str:
    if isinstance(val, str):
        return val
    if val is JS_UNDEFINED:
        return "undefined"
    if val is None:
        return "null"
    if isinstance(val, bool):
        return "true" if val else "false"
    if isinstance(val, float):
        if math.isnan(val):
            return "NaN"
        if math.isinf(val):
            return "Infinity" if val > 0 else "-Infinity"
        return str(int(val)) if val.is_integer() else repr(val)
    if isinstance(val, int):
        return str(val)
    if isinstance(val, list):
        return ",".join("" if v is None or v is JS_UNDEFINED else _to_string(v) for v in val)
    if isinstance(val, dict):
        return "[object Object]"
    return "function"


def _string_length(val: Any, limit: int, sep: str = ",") -> int:
    """
    Length of ``_to_string(val)`` without building it.

    Arrays stop counting once past ``limit``, so the result is exact only up
    to ``limit``.
    """
    if isinstance(val, str):
        return len(val)
    if isinstance(val, list):
        total = len(sep) * max(len(val) - 1, 0)
        for item in val:
            if total > limit:
                break
            if item is not None and item is not JS_UNDEFINED:
                total += _string_length(item, limit)
        return total
    return len(_to_string(val))


def _to_int_arg(args: list, index: int, default: int) -> int:
    if index >= len(args) or args[index] is JS_UNDEFINED:
        return default
    num = _to_number(args[index])
    if isinstance(num, float) and (math.isnan(num) or math.isinf(num)):
        return 0 if math.isnan(num) else (default if num > 0 else -default)
    return int(num)


def _strict_equals(a: Any, b: Any) -> bool:
    if _is_number(a) and _is_number(b):
        return a == b
    if type(a) is not type(b):
        return False
    if isinstance(a, (str, bool)):
        return a == b
    return a is b


def _loose_equals(a: Any, b: Any) -> bool:
    nullish = (None, JS_UNDEFINED)
    if a in nullish or b in nullish:
        return a in nullish and b in nullish
    if isinstance(a, (str, bool)) and _is_number(b) or _is_number(a) and isinstance(b, (str, bool)):
        return _to_number(a) == _to_number(b)
    return _strict_equals(a, b)


def _compare(op: str, a: Any, b: Any) -> bool:
    if not (isinstance(a, str) and isinstance(b, str)):
        a, b = _to_number(a), _to_number(b)
        if math.isnan(a) or math.isnan(b):
            return False
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    return a >= b


def _divide(a: Any, b: Any) -> Any:
    x, y = _to_number(a), _to_number(b)
    if y == 0:
        if x == 0 or math.isnan(x):
            return math.nan
        return math.inf if x > 0 else -math.inf
    return _normalize(x / y)


def _remainder(a: Any, b: Any) -> Any:
    x, y = _to_number(a), _to_number(b)
    if y == 0 or math.isnan(x) or math.isnan(y) or math.isinf(x):
        return math.nan
    return _normalize(math.fmod(x, y))


def _apply_binary(op: str, a: Any, b: Any) -> Any:
    if op == "+":
        if isinstance(a, (str, list, dict)) or isinstance(b, (str, list, dict)):
            return _to_string(a) + _to_string(b)
        return _normalize(_to_number(a) + _to_number(b))
    if op == "-":
        return _normalize(_to_number(a) - _to_number(b))
    if op == "*":
        return _normalize(_to_number(a) * _to_number(b))
    if op == "/":
        return _divide(a, b)
    if op == "%":
        return _remainder(a, b)
    if op == "|":
        return _to_int32(_to_int32(a) | _to_int32(b))
    if op == "^":
        return _to_int32(_to_int32(a) ^ _to_int32(b))
    if op == "&":
        return _to_int32(_to_int32(a) & _to_int32(b))
    if op == "<<":
        return _to_int32(_to_int32(a) << (_to_uint32(b) & 31))
    if op == ">>":
        return _to_int32(a) >> (_to_uint32(b) & 31)
    if op == ">>>":
        return _to_uint32(a) >> (_to_uint32(b) & 31)
    if op == "===":
        return _strict_equals(a, b)
    if op == "!==":
        return not _strict_equals(a, b)
    if op == "==":
        return _loose_equals(a, b)
    if op == "!=":
        return not _loose_equals(a, b)
    if op in ("<", ">", "<=", ">="):
        return _compare(op, a, b)
    raise JSInterpreterError(f"Unsupported operator {op!r}")


def _typeof(val: Any) -> str:
    if val is JS_UNDEFINED:
        return "undefined"
    if isinstance(val, bool):
        return "boolean"
    if _is_number(val):
        return "number"
    if isinstance(val, str):
        return "string"
    if isinstance(val, JSFunction) or callable(val):
        return "function"
    return "object"


def _decode_string(body: str) -> str:
    out = []
    i = 0
    while i < len(body):
        c = body[i]
        if c != "\\" or i + 1 >= len(body):
            out.append(c)
            i += 1
            continue
        nxt = body[i + 1]
        if nxt == "u" and re.match(r"[0-9a-fA-F]{4}", body[i + 2 : i + 6]):
            out.append(chr(int(body[i + 2 : i + 6], 16)))
            i += 6
        elif nxt == "x" and re.match(r"[0-9a-fA-F]{2}", body[i + 2 : i + 4]):
            out.append(chr(int(body[i + 2 : i + 4], 16)))
            i += 4
        else:
            out.append(_STRING_ESCAPES.get(nxt, nxt))
            i += 2
    return "".join(out)


# ----------------------------------------------------------------------
# Source scanning
# ----------------------------------------------------------------------


def _string_end(text: str, start: int) -> int:
    quote_char = text[start]
    i = start + 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == quote_char:
            return i
        i += 1
    raise JSInterpreterError("Unterminated string literal")


def _split_top_level(text: str, separator: str) -> list[str]:
    """Split at ``separator`` where it is outside strings and brackets."""
    parts = []
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        c = text[i]
        if c in _QUOTES:
            i = _string_end(text, i) + 1
            continue
        if c in "([{":
            depth += 1
        elif c in ")]}":
            depth -= 1
        elif c == separator and depth == 0:
            parts.append(text[start:i])
            start = i + 1
        i += 1
    parts.append(text[start:])
    return parts


def _split_statements(code: str) -> list[str]:
    """
    Split a block into statements at top-level ``;`` and after the closing
    brace of a block statement (``if(..){..}`` followed by more code).
    """
    statements = []
    depth = 0
    start = 0
    opened_block = False
    i = 0
    while i < len(code):
        c = code[i]
        if c in _QUOTES:
            i = _string_end(code, i) + 1
            continue
        if c in "([{":
            if c == "{" and depth == 0:
                prefix = code[start:i].rstrip()
                opened_block = (
                    not prefix
                    or prefix.endswith(")")
                    or re.search(r"\b(?:else|try|finally|do)$", prefix) is not None
                )
            depth += 1
        elif c in ")]}":
            depth -= 1
            if (
                c == "}"
                and depth == 0
                and opened_block
                and _BLOCK_STATEMENT_PATTERN.match(code[start:].lstrip())
                and not _CONTINUATION_PATTERN.match(code[i + 1 :].lstrip())
            ):
                statements.append(code[start : i + 1])
                start = i + 1
                opened_block = False
        elif c == ";" and depth == 0:
            statements.append(code[start:i])
            start = i + 1
        i += 1
    statements.append(code[start:])
    return [s.strip() for s in statements if s.strip()]


def _operator_tokens(expr: str) -> list[tuple[int, str]]:
    """
    Return ``(position, operator)`` for every top-level binary, assignment
    and ternary operator. Prefix and postfix operators are skipped.
    """
    tokens = []
    depth = 0
    after_operand = False
    i = 0
    n = len(expr)
    while i < n:
        c = expr[i]
        if c in _QUOTES:
            i = _string_end(expr, i) + 1
            if depth == 0:
                after_operand = True
            continue
        if c in "([{":
            depth += 1
            i += 1
            continue
        if c in ")]}":
            depth -= 1
            if depth == 0:
                after_operand = True
            i += 1
            continue
        if depth > 0 or c.isspace():
            i += 1
            continue
        if c not in _OPERATOR_CHARS:
            after_operand = True
            i += 1
            continue

        end = i
        while end < n and expr[end] in _OPERATOR_CHARS:
            end += 1
        run = expr[i:end]
        offset = 2 if after_operand and run.startswith(("++", "--")) else 0
        if offset < len(run):
            if after_operand:
                op = next((o for o in _BINARY_OPERATORS if run.startswith(o, offset)), None)
                if op is not None:
                    tokens.append((i + offset, op))
            after_operand = False
        i = end
    return tokens


def _split_chain(expr: str) -> tuple[str, list[tuple[str, str]]]:
    """Split ``head.member[index](args)...`` into its head and accessors."""
    c = expr[0]
    if c in "([{":
        end = find_matching_bracket(expr, 0)
        if end < 0:
            raise JSInterpreterError(f"Unbalanced brackets in {expr[:80]!r}")
        i = end + 1
    elif c in _QUOTES:
        i = _string_end(expr, 0) + 1
    else:
        m = _FUNCTION_EXPR_PATTERN.match(expr)
        if m:
            end = find_matching_bracket(expr, m.end() - 1)
            if end < 0:
                raise JSInterpreterError("Unterminated function body")
            i = end + 1
        else:
            m = _NUMBER_PATTERN.match(expr) or _NAME_PATTERN.match(expr)
            if not m:
                raise JSInterpreterError(f"Unsupported expression: {expr[:80]!r}")
            i = m.end()
    head = expr[:i]

    accessors = []
    while i < len(expr):
        c = expr[i]
        if c.isspace():
            i += 1
        elif c == ".":
            m = _NAME_PATTERN.match(expr, i + 1)
            if not m:
                raise JSInterpreterError(f"Bad member access in {expr[:80]!r}")
            accessors.append((".", m.group()))
            i = m.end()
        elif c in "[(":
            end = find_matching_bracket(expr, i)
            if end < 0:
                raise JSInterpreterError(f"Unbalanced brackets in {expr[:80]!r}")
            accessors.append((c, expr[i + 1 : end]))
            i = end + 1
        else:
            raise JSInterpreterError(f"Unsupported expression: {expr[:80]!r}")
    return head, accessors


# ----------------------------------------------------------------------
# Builtins
# ----------------------------------------------------------------------


def _parse_int(value: Any = JS_UNDEFINED, radix: Any = JS_UNDEFINED) -> int | float:
    text = _to_string(value).strip()
    base = 10 if radix is JS_UNDEFINED else _to_int32(radix)
    m = re.match(r"[+-]?(?:0[xX])?[0-9a-zA-Z]+", text)
    if not m:
        return math.nan
    digits = m.group()
    if base in (0, 16) and re.match(r"[+-]?0[xX]", digits):
        base = 16
    elif base == 0:
        base = 10
    for end in range(len(digits), 0, -1):
        try:
            return int(digits[:end], base)
        except ValueError:
            continue
    return math.nan


def _js_round(x: Any) -> int | float:
    num = _to_number(x)
    if math.isnan(num) or math.isinf(num):
        return num
    return math.floor(num + 0.5)


def _math_extreme(pick, empty):
    def func(*values):
        if not values:
            return empty
        nums = [_to_number(v) for v in values]
        if any(math.isnan(n) for n in nums):
            return math.nan
        return _normalize(pick(nums))

    return func


def _math_unary(func):
    def wrapper(x: Any = JS_UNDEFINED):
        num = _to_number(x)
        if math.isnan(num):
            return math.nan
        try:
            return _normalize(func(num))
        except (ValueError, OverflowError):
            return math.nan

    return wrapper


def _make_builtins() -> dict[str, Any]:
    return {
        "Math": {
            "abs": _math_unary(abs),
            "floor": _math_unary(math.floor),
            "ceil": _math_unary(math.ceil),
            "trunc": _math_unary(math.trunc),
            "round": _js_round,
            "sqrt": _math_unary(math.sqrt),
            "sign": _math_unary(lambda x: (x > 0) - (x < 0)),
            "pow": lambda x, y: _normalize(math.pow(_to_number(x), _to_number(y))),
            "max": _math_extreme(max, -math.inf),
            "min": _math_extreme(min, math.inf),
            "PI": math.pi,
            "E": math.e,
        },
        "String": {
            "fromCharCode": lambda *codes: "".join(chr(_to_uint32(c) & 0xFFFF) for c in codes),
        },
        "parseInt": _parse_int,
        "isNaN": lambda v=JS_UNDEFINED: math.isnan(_to_number(v)),
        "Number": lambda v=0: _to_number(v),
        "encodeURIComponent": lambda v: quote(_to_string(v), safe="-_.!~*'()"),
        "decodeURIComponent": lambda v: unquote(_to_string(v)),
    }


# ----------------------------------------------------------------------
# Interpreter
# ----------------------------------------------------------------------


class _Scope:
    """Variable bindings of one function invocation, chained to its closure."""

    def __init__(self, parent: "_Scope | None" = None, variables: dict | None = None):
        self.parent = parent
        self.variables = variables or {}

    def lookup(self, name: str) -> Any:
        scope = self
        while scope is not None:
            if name in scope.variables:
                return scope.variables[name]
            scope = scope.parent
        raise JSInterpreterError(f"{name} is not defined")

    def declare(self, name: str, value: Any = JS_UNDEFINED):
        self.variables[name] = value

    def assign(self, name: str, value: Any):
        scope = self
        while scope is not None:
            if name in scope.variables:
                scope.variables[name] = value
                return
            if scope.parent is None:
                scope.variables[name] = value
                return
            scope = scope.parent


class JSFunction:
    """A script function bound to the scope it was created in."""

    def __init__(
        self,
        interpreter: "JSInterpreter",
        name: str | None,
        params: list[str],
        body: str,
        closure: _Scope,
    ):
        self.interpreter = interpreter
        self.name = name
        self.params = params
        self.body = body
        self.closure = closure

    def __call__(self, *args: Any) -> Any:
        scope = _Scope(self.closure)
        for i, name in enumerate(self.params):
            scope.declare(name, args[i] if i < len(args) else JS_UNDEFINED)
        scope.declare("arguments", list(args))
        value, returned = self.interpreter._run_block(self.body, scope)
        return value if returned else JS_UNDEFINED

    def __repr__(self):
        return f"<JSFunction {self.name or 'anonymous'}>"


class JSInterpreter:
    """
    Interpreter for a self-contained piece of player code.

    Functions are looked up in ``code`` only; nothing else is in scope apart
    from the builtin table.
    """

    def __init__(self, code: str, max_steps: int | None = None, max_length: int | None = None):
        self.code = code
        self._max_steps = max_steps or get_settings().evaluator_max_steps
        self._max_length = max_length or get_settings().evaluator_max_length
        self._steps = 0
        self._globals = _Scope(variables=_make_builtins())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract_function(self, func_name: str) -> JSFunction:
        """Locate ``func_name`` in the code and return it as a callable."""
        name_re = re.escape(func_name)
        m = re.search(
            rf"(?:function\s+{name_re}|(?<![\w$.]){name_re}\s*=\s*function)"
            rf"\s*\((?P<args>[^)]*)\)\s*\{{",
            self.code,
        )
        if not m:
            raise JSInterpreterError(f"Could not find function {func_name!r}")

        end = find_matching_bracket(self.code, m.end() - 1)
        if end < 0:
            raise JSInterpreterError(f"Could not find the end of function {func_name!r}")

        params = [a.strip() for a in m.group("args").split(",") if a.strip()]
        return JSFunction(self, func_name, params, self.code[m.end() : end], self._globals)

    def call_function(self, func_name: str, *args: Any) -> Any:
        self._steps = 0
        return self.extract_function(func_name)(*args)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _tick(self):
        self._steps += 1
        if self._steps > self._max_steps:
            raise StepLimitExceeded(f"Step budget of {self._max_steps} exhausted")

    def _reserve(self, length: int):
        """Fail before building a string or array of ``length`` elements."""
        if length > self._max_length:
            raise SizeLimitExceeded(f"Length {length} exceeds the budget of {self._max_length}")

    def _binary(self, op: str, a: Any, b: Any) -> Any:
        if op == "+" and (isinstance(a, (str, list, dict)) or isinstance(b, (str, list, dict))):
            self._reserve(
                _string_length(a, self._max_length) + _string_length(b, self._max_length)
            )
        return _apply_binary(op, a, b)

    def _run_block(self, code: str, scope: _Scope) -> tuple[Any, bool]:
        """Run statements in order. Returns (value, returned)."""
        statements = _split_statements(code)

        for stmt in statements:
            m = _FUNCTION_DECL_PATTERN.match(stmt)
            if m:
                scope.declare(m.group(1), self._make_function(stmt, m, scope))

        i = 0
        while i < len(statements):
            stmt = statements[i]
            i += 1
            if _FUNCTION_DECL_PATTERN.match(stmt):
                continue
            if stmt.startswith("if"):
                # Unbraced bodies get split off their "else" at the ";".
                while i < len(statements) and _CONTINUATION_PATTERN.match(statements[i]):
                    stmt = f"{stmt};{statements[i]}"
                    i += 1
            value, returned = self._exec_statement(stmt, scope)
            if returned:
                return value, True

        return JS_UNDEFINED, False

    def _exec_statement(self, stmt: str, scope: _Scope) -> tuple[Any, bool]:
        stmt = stmt.strip()
        if not stmt:
            return JS_UNDEFINED, False
        self._tick()

        if stmt.startswith("{"):
            end = find_matching_bracket(stmt, 0)
            return self._run_block(stmt[1:end], scope)

        m = re.match(r"return\b", stmt)
        if m:
            return self._evaluate(stmt[m.end() :], scope), True

        m = re.match(r"(?:var|let|const)\s+", stmt)
        if m:
            self._declare(stmt[m.end() :], scope)
            return JS_UNDEFINED, False

        if re.match(r"if\s*\(", stmt):
            return self._exec_if(stmt, scope)
        if re.match(r"for\s*\(", stmt):
            return self._exec_for(stmt, scope)
        if re.match(r"while\s*\(", stmt):
            return self._exec_while(stmt, scope)
        if re.match(r"try\s*\{", stmt):
            return self._exec_try(stmt, scope)
        if re.fullmatch(r"break\b\s*", stmt):
            raise JSBreak()
        if re.fullmatch(r"continue\b\s*", stmt):
            raise JSContinue()

        m = re.match(r"throw\b", stmt)
        if m:
            raise JSThrow(self._evaluate(stmt[m.end() :], scope))

        if re.match(r"(?:switch|do)\b", stmt):
            raise JSInterpreterError(f"Unsupported statement: {stmt[:40]!r}")

        return self._evaluate(stmt, scope), False

    def _declare(self, declarations: str, scope: _Scope):
        for part in _split_top_level(declarations, ","):
            part = part.strip()
            if not part:
                continue
            tokens = _operator_tokens(part)
            if tokens and tokens[0][1] == "=":
                pos = tokens[0][0]
                scope.declare(part[:pos].strip(), self._evaluate(part[pos + 1 :], scope))
            else:
                scope.declare(part)

    def _split_condition(self, stmt: str) -> tuple[str, str]:
        """Split ``kw(cond)rest`` into ``cond`` and ``rest``."""
        open_pos = stmt.index("(")
        close_pos = find_matching_bracket(stmt, open_pos)
        if close_pos < 0:
            raise JSInterpreterError(f"Unbalanced condition in {stmt[:40]!r}")
        return stmt[open_pos + 1 : close_pos], stmt[close_pos + 1 :].strip()

    def _exec_if(self, stmt: str, scope: _Scope) -> tuple[Any, bool]:
        cond, rest = self._split_condition(stmt)

        if rest.startswith("{"):
            end = find_matching_bracket(rest, 0)
            body, tail = rest[: end + 1], rest[end + 1 :].strip()
        else:
            parts = _split_top_level(rest, ";")
            body, tail = parts[0], ";".join(parts[1:]).strip()
        tail = tail.lstrip(";").strip()

        else_body = None
        m = re.match(r"else\b", tail)
        if m:
            else_body = tail[m.end() :].strip()

        if _truthy(self._evaluate(cond, scope)):
            return self._exec_statement(body, scope)
        if else_body:
            return self._exec_statement(else_body, scope)
        return JS_UNDEFINED, False

    def _exec_loop_body(self, body: str, scope: _Scope) -> tuple[Any, bool, bool]:
        """Run one iteration. Returns (value, returned, broke)."""
        try:
            value, returned = self._exec_statement(body, scope)
        except JSBreak:
            return JS_UNDEFINED, False, True
        except JSContinue:
            return JS_UNDEFINED, False, False
        return value, returned, False

    def _exec_for(self, stmt: str, scope: _Scope) -> tuple[Any, bool]:
        header, body = self._split_condition(stmt)
        parts = _split_top_level(header, ";")
        if len(parts) != 3:
            raise JSInterpreterError(f"Unsupported for loop: {header[:40]!r}")
        init, cond, step = (p.strip() for p in parts)

        if init:
            self._exec_statement(init, scope)
        while True:
            self._tick()
            if cond and not _truthy(self._evaluate(cond, scope)):
                break
            value, returned, broke = self._exec_loop_body(body, scope)
            if returned:
                return value, True
            if broke:
                break
            if step:
                self._evaluate(step, scope)
        return JS_UNDEFINED, False

    def _exec_while(self, stmt: str, scope: _Scope) -> tuple[Any, bool]:
        cond, body = self._split_condition(stmt)
        while True:
            self._tick()
            if not _truthy(self._evaluate(cond, scope)):
                break
            value, returned, broke = self._exec_loop_body(body, scope)
            if returned:
                return value, True
            if broke:
                break
        return JS_UNDEFINED, False

    def _exec_try(self, stmt: str, scope: _Scope) -> tuple[Any, bool]:
        open_pos = stmt.index("{")
        end = find_matching_bracket(stmt, open_pos)
        try_body = stmt[open_pos + 1 : end]
        rest = stmt[end + 1 :].strip()

        catch_name = catch_body = finally_body = None
        m = re.match(rf"catch\s*(?:\(\s*({_NAME_RE})\s*\))?\s*\{{", rest)
        if m:
            end = find_matching_bracket(rest, m.end() - 1)
            catch_name, catch_body = m.group(1), rest[m.end() : end]
            rest = rest[end + 1 :].strip()
        m = re.match(r"finally\s*\{", rest)
        if m:
            end = find_matching_bracket(rest, m.end() - 1)
            finally_body = rest[m.end() : end]

        try:
            return self._run_block(try_body, scope)
        except BudgetExceeded:
            raise
        except (JSInterpreterError, *_SCRIPT_FAULTS) as exc:
            if catch_body is None:
                raise
            catch_scope = _Scope(scope)
            if catch_name:
                catch_scope.declare(
                    catch_name, exc.value if isinstance(exc, JSThrow) else str(exc)
                )
            return self._run_block(catch_body, catch_scope)
        finally:
            if finally_body is not None:
                self._run_block(finally_body, scope)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _evaluate(self, expr: str, scope: _Scope) -> Any:
        expr = expr.strip()
        if not expr:
            return JS_UNDEFINED
        self._tick()

        parts = _split_top_level(expr, ",")
        if len(parts) > 1:
            value = JS_UNDEFINED
            for part in parts:
                value = self._evaluate(part, scope)
            return value

        tokens = _operator_tokens(expr)
        if tokens:
            first = next((t for t in tokens if t[1] in _ASSIGN_OPERATORS or t[1] == "?"), None)
            if first is not None and first[1] in _ASSIGN_OPERATORS:
                pos, op = first
                return self._evaluate_assignment(
                    expr[:pos], op, expr[pos + len(op) :], scope
                )
            if first is not None:
                return self._evaluate_ternary(expr, tokens, tokens.index(first), scope)

            for group in _PRECEDENCE:
                candidates = [t for t in tokens if t[1] in group]
                if not candidates:
                    continue
                pos, op = candidates[-1]
                left, right = expr[:pos], expr[pos + len(op) :]
                if op == "&&":
                    value = self._evaluate(left, scope)
                    return self._evaluate(right, scope) if _truthy(value) else value
                if op == "||":
                    value = self._evaluate(left, scope)
                    return value if _truthy(value) else self._evaluate(right, scope)
                return self._binary(op, self._evaluate(left, scope), self._evaluate(right, scope))

        return self._evaluate_unary(expr, scope)

    def _evaluate_ternary(
        self, expr: str, tokens: list[tuple[int, str]], index: int, scope: _Scope
    ) -> Any:
        question = tokens[index][0]
        nesting = 0
        for pos, op in tokens[index + 1 :]:
            if op == "?":
                nesting += 1
            elif op == ":":
                if nesting == 0:
                    cond = self._evaluate(expr[:question], scope)
                    branch = expr[question + 1 : pos] if _truthy(cond) else expr[pos + 1 :]
                    return self._evaluate(branch, scope)
                nesting -= 1
        raise JSInterpreterError(f"Malformed ternary: {expr[:80]!r}")

    def _evaluate_assignment(self, target: str, op: str, value_expr: str, scope: _Scope) -> Any:
        value = self._evaluate(value_expr, scope)
        if op != "=":
            value = self._binary(op[:-1], self._evaluate(target, scope), value)
        self._assign(target.strip(), value, scope)
        return value

    def _evaluate_unary(self, expr: str, scope: _Scope) -> Any:
        if expr.startswith(("++", "--")):
            return self._update(expr[2:], 1 if expr[0] == "+" else -1, True, scope)
        c = expr[0]
        if c == "!":
            return not _truthy(self._evaluate(expr[1:], scope))
        if c == "-":
            return _normalize(-_to_number(self._evaluate(expr[1:], scope)))
        if c == "+":
            return _to_number(self._evaluate(expr[1:], scope))
        if c == "~":
            return ~_to_int32(self._evaluate(expr[1:], scope))
        m = re.match(r"typeof\b", expr)
        if m:
            operand = expr[m.end() :].strip()
            if _NAME_PATTERN.fullmatch(operand):
                try:
                    return _typeof(scope.lookup(operand))
                except JSInterpreterError:
                    return "undefined"
            return _typeof(self._evaluate(operand, scope))
        m = re.match(r"void\b", expr)
        if m:
            self._evaluate(expr[m.end() :], scope)
            return JS_UNDEFINED
        if expr.endswith(("++", "--")):
            return self._update(expr[:-2], 1 if expr[-1] == "+" else -1, False, scope)
        return self._evaluate_chain(expr, scope)

    def _update(self, target: str, delta: int, prefix: bool, scope: _Scope) -> Any:
        old = _to_number(self._evaluate(target, scope))
        new = _normalize(old + delta)
        self._assign(target.strip(), new, scope)
        return new if prefix else old

    def _evaluate_chain(self, expr: str, scope: _Scope) -> Any:
        head, accessors = _split_chain(expr)
        return self._resolve_accessors(self._evaluate_primary(head, scope), accessors, scope)

    def _resolve_accessors(self, value: Any, accessors: list[tuple[str, str]], scope: _Scope) -> Any:
        i = 0
        while i < len(accessors):
            kind, text = accessors[i]
            if kind == "(":
                value = self._call(value, self._evaluate_args(text, scope))
                i += 1
                continue
            key = text if kind == "." else self._evaluate(text, scope)
            if i + 1 < len(accessors) and accessors[i + 1][0] == "(":
                args = self._evaluate_args(accessors[i + 1][1], scope)
                value = self._call_method(value, key, args)
                i += 2
                continue
            value = self._get_member(value, key)
            i += 1
        return value

    def _evaluate_args(self, text: str, scope: _Scope) -> list:
        if not text.strip():
            return []
        return [self._evaluate(part, scope) for part in _split_top_level(text, ",")]

    def _evaluate_primary(self, head: str, scope: _Scope) -> Any:
        c = head[0]
        if c == "(":
            return self._evaluate(head[1:-1], scope)
        if c == "[":
            items = _split_top_level(head[1:-1], ",")
            if items and not items[-1].strip():
                items.pop()
            return [self._evaluate(item, scope) for item in items]
        if c == "{":
            return self._object_literal(head[1:-1], scope)
        if c in _QUOTES:
            return _decode_string(head[1:-1])

        m = _FUNCTION_EXPR_PATTERN.match(head)
        if m:
            return self._make_function(head, m, scope)

        if _NUMBER_PATTERN.fullmatch(head):
            if head[:2].lower() == "0x":
                return int(head, 16)
            if any(ch in head for ch in ".eE"):
                return _normalize(float(head))
            return int(head)

        literals = {
            "true": True,
            "false": False,
            "null": None,
            "undefined": JS_UNDEFINED,
            "NaN": math.nan,
            "Infinity": math.inf,
            "this": JS_UNDEFINED,
        }
        if head in literals:
            return literals[head]
        return scope.lookup(head)

    def _object_literal(self, body: str, scope: _Scope) -> dict:
        obj = {}
        for entry in _split_top_level(body, ","):
            entry = entry.strip()
            if not entry:
                continue
            key, *value = _split_top_level(entry, ":")
            key = key.strip()
            if key[:1] in _QUOTES:
                key = _decode_string(key[1:-1])
            obj[key] = self._evaluate(":".join(value), scope) if value else JS_UNDEFINED
        return obj

    def _make_function(self, text: str, m: re.Match, scope: _Scope) -> JSFunction:
        end = find_matching_bracket(text, m.end() - 1)
        params = [p.strip() for p in m.group(2).split(",") if p.strip()]
        return JSFunction(self, m.group(1), params, text[m.end() : end], scope)

    # ------------------------------------------------------------------
    # Members and calls
    # ------------------------------------------------------------------

    def _assign(self, target: str, value: Any, scope: _Scope):
        if _NAME_PATTERN.fullmatch(target):
            scope.assign(target, value)
            return

        head, accessors = _split_chain(target)
        if not accessors or accessors[-1][0] == "(":
            raise JSInterpreterError(f"Invalid assignment target {target!r}")
        container = self._resolve_accessors(
            self._evaluate_primary(head, scope), accessors[:-1], scope
        )
        kind, text = accessors[-1]
        key = text if kind == "." else self._evaluate(text, scope)

        if isinstance(container, list):
            if key == "length":
                size = _to_uint32(value)
                self._reserve(size)
                del container[size:]
                container.extend([JS_UNDEFINED] * (size - len(container)))
                return
            index = int(_to_number(key))
            if index < 0:
                raise JSInterpreterError(f"Negative array index {index}")
            if index >= len(container):
                self._reserve(index + 1)
                container.extend([JS_UNDEFINED] * (index + 1 - len(container)))
            container[index] = value
        elif isinstance(container, dict):
            container[_to_string(_normalize(key))] = value
        else:
            raise JSInterpreterError(f"Cannot set property {key!r} of {_to_string(container)}")

    def _get_member(self, obj: Any, key: Any) -> Any:
        if obj is None or obj is JS_UNDEFINED:
            raise JSInterpreterError(f"Cannot read property {key!r} of {_to_string(obj)}")
        if isinstance(obj, (str, list)):
            if key == "length":
                return len(obj)
            if _is_number(key) or (isinstance(key, str) and key.isdigit()):
                index = int(_to_number(key))
                return obj[index] if 0 <= index < len(obj) else JS_UNDEFINED
            return JS_UNDEFINED
        if isinstance(obj, dict):
            return obj.get(_to_string(_normalize(key)), JS_UNDEFINED)
        if isinstance(obj, JSFunction) and key == "length":
            return len(obj.params)
        return JS_UNDEFINED

    def _call(self, func: Any, args: list) -> Any:
        if isinstance(func, JSFunction) or callable(func):
            return func(*args)
        raise JSInterpreterError(f"{_to_string(func)} is not a function")

    def _call_method(self, obj: Any, method: Any, args: list) -> Any:
        if isinstance(obj, str) and method in _STRING_METHODS:
            return _STRING_METHODS[method](self, obj, args)
        if isinstance(obj, list) and method in _ARRAY_METHODS:
            return _ARRAY_METHODS[method](self, obj, args)
        if isinstance(obj, JSFunction) and method == "call":
            return obj(*args[1:])
        if isinstance(obj, JSFunction) and method == "apply":
            return obj(*(args[1] if len(args) > 1 and isinstance(args[1], list) else []))
        return self._call(self._get_member(obj, method), args)


# ----------------------------------------------------------------------
# String and array methods
# ----------------------------------------------------------------------


def _arg(args: list, index: int, default: Any = JS_UNDEFINED) -> Any:
    return args[index] if index < len(args) else default


def _relative_index(value: int, length: int) -> int:
    return max(length + value, 0) if value < 0 else min(value, length)


def _str_split(interp, s: str, args: list) -> list:
    sep = _arg(args, 0)
    if sep is JS_UNDEFINED:
        return [s]
    sep = _to_string(sep)
    return list(s) if sep == "" else s.split(sep)


def _str_slice(interp, s: str, args: list) -> str:
    start = _relative_index(_to_int_arg(args, 0, 0), len(s))
    end = _relative_index(_to_int_arg(args, 1, len(s)), len(s))
    return s[start:end]


def _str_substring(interp, s: str, args: list) -> str:
    start = min(max(_to_int_arg(args, 0, 0), 0), len(s))
    end = min(max(_to_int_arg(args, 1, len(s)), 0), len(s))
    return s[min(start, end) : max(start, end)]


def _str_substr(interp, s: str, args: list) -> str:
    start = _relative_index(_to_int_arg(args, 0, 0), len(s))
    length = max(_to_int_arg(args, 1, len(s) - start), 0)
    return s[start : start + length]


def _str_char_code_at(interp, s: str, args: list) -> int | float:
    index = _to_int_arg(args, 0, 0)
    return ord(s[index]) if 0 <= index < len(s) else math.nan


def _str_index_of(interp, s: str, args: list) -> int:
    return s.find(_to_string(_arg(args, 0)), max(_to_int_arg(args, 1, 0), 0))


def _str_replace(interp, s: str, args: list) -> str:
    pattern, replacement = _arg(args, 0), _arg(args, 1)
    if not isinstance(pattern, str):
        raise JSInterpreterError("Only string patterns are supported by replace()")
    if isinstance(replacement, JSFunction):
        index = s.find(pattern)
        if index < 0:
            return s
        replacement = replacement(pattern, index, s)
    interp._reserve(len(s) + _string_length(replacement, interp._max_length))
    return s.replace(pattern, _to_string(replacement), 1)


def _str_concat(interp, s: str, args: list) -> str:
    interp._reserve(len(s) + sum(_string_length(v, interp._max_length) for v in args))
    return s + "".join(_to_string(v) for v in args)


def _str_repeat(interp, s: str, args: list) -> str:
    count = max(_to_int_arg(args, 0, 0), 0)
    interp._reserve(len(s) * count)
    return s * count


def _str_pad(interp, s: str, args: list, at_start: bool) -> str:
    width = _to_int_arg(args, 0, 0)
    interp._reserve(width)
    fill = _to_string(_arg(args, 1, " "))[:1] or " "
    return s.rjust(width, fill) if at_start else s.ljust(width, fill)


_STRING_METHODS = {
    "split": _str_split,
    "slice": _str_slice,
    "substring": _str_substring,
    "substr": _str_substr,
    "charAt": lambda i, s, a: s[_to_int_arg(a, 0, 0)] if 0 <= _to_int_arg(a, 0, 0) < len(s) else "",
    "charCodeAt": _str_char_code_at,
    "indexOf": _str_index_of,
    "lastIndexOf": lambda i, s, a: s.rfind(_to_string(_arg(a, 0))),
    "includes": lambda i, s, a: _to_string(_arg(a, 0)) in s,
    "startsWith": lambda i, s, a: s.startswith(_to_string(_arg(a, 0))),
    "endsWith": lambda i, s, a: s.endswith(_to_string(_arg(a, 0))),
    "replace": _str_replace,
    "toLowerCase": lambda i, s, a: s.lower(),
    "toUpperCase": lambda i, s, a: s.upper(),
    "trim": lambda i, s, a: s.strip(),
    "concat": _str_concat,
    "repeat": _str_repeat,
    "padStart": lambda i, s, a: _str_pad(i, s, a, at_start=True),
    "padEnd": lambda i, s, a: _str_pad(i, s, a, at_start=False),
    "toString": lambda i, s, a: s,
}


def _arr_splice(interp, arr: list, args: list) -> list:
    start = _relative_index(_to_int_arg(args, 0, 0), len(arr))
    count = len(arr) - start if len(args) < 2 else _to_int_arg(args, 1, 0)
    count = min(max(count, 0), len(arr) - start)
    interp._reserve(len(arr) - count + max(len(args) - 2, 0))
    removed = arr[start : start + count]
    arr[start : start + count] = args[2:]
    return removed


def _arr_slice(interp, arr: list, args: list) -> list:
    start = _relative_index(_to_int_arg(args, 0, 0), len(arr))
    end = _relative_index(_to_int_arg(args, 1, len(arr)), len(arr))
    return arr[start:end]


def _arr_index_of(interp, arr: list, args: list) -> int:
    target = _arg(args, 0)
    return next((i for i, v in enumerate(arr) if _strict_equals(v, target)), -1)


def _arr_unshift(interp, arr: list, args: list) -> int:
    interp._reserve(len(arr) + len(args))
    arr[0:0] = args
    return len(arr)


def _arr_push(interp, arr: list, args: list) -> int:
    interp._reserve(len(arr) + len(args))
    arr.extend(args)
    return len(arr)


def _arr_reverse(interp, arr: list, args: list) -> list:
    arr.reverse()
    return arr


def _arr_for_each(interp, arr: list, args: list) -> Any:
    callback = _arg(args, 0)
    for i, item in enumerate(list(arr)):
        interp._call(callback, [item, i, arr])
    return JS_UNDEFINED


def _arr_reduce(interp, arr: list, args: list) -> Any:
    callback = _arg(args, 0)
    items = list(enumerate(arr))
    if len(args) > 1:
        acc = args[1]
    elif items:
        acc = items.pop(0)[1]
    else:
        raise JSInterpreterError("Reduce of empty array with no initial value")
    for i, item in items:
        acc = interp._call(callback, [acc, item, i, arr])
    return acc


def _arr_concat(interp, arr: list, args: list) -> list:
    interp._reserve(len(arr) + sum(len(v) if isinstance(v, list) else 1 for v in args))
    result = list(arr)
    for value in args:
        if isinstance(value, list):
            result.extend(value)
        else:
            result.append(value)
    return result


def _arr_join(interp, arr: list, args: list) -> str:
    sep = _arg(args, 0)
    if sep is JS_UNDEFINED:
        sep = ","
    else:
        interp._reserve(_string_length(sep, interp._max_length))
        sep = _to_string(sep)
    interp._reserve(_string_length(arr, interp._max_length, sep))
    return sep.join("" if v is None or v is JS_UNDEFINED else _to_string(v) for v in arr)


_ARRAY_METHODS = {
    "push": _arr_push,
    "pop": lambda i, arr, a: arr.pop() if arr else JS_UNDEFINED,
    "shift": lambda i, arr, a: arr.pop(0) if arr else JS_UNDEFINED,
    "unshift": _arr_unshift,
    "reverse": _arr_reverse,
    "splice": _arr_splice,
    "slice": _arr_slice,
    "indexOf": _arr_index_of,
    "includes": lambda i, arr, a: _arr_index_of(i, arr, a) >= 0,
    "join": _arr_join,
    "concat": _arr_concat,
    "forEach": _arr_for_each,
    "map": lambda i, arr, a: [i._call(a[0], [v, n, arr]) for n, v in enumerate(list(arr))],
    "filter": lambda i, arr, a: [
        v for n, v in enumerate(list(arr)) if _truthy(i._call(a[0], [v, n, arr]))
    ],
    "reduce": _arr_reduce,
    "toString": lambda i, arr, a: _arr_join(i, arr, []),
}


# ----------------------------------------------------------------------
# Evaluation capability
# ----------------------------------------------------------------------


class SandboxedEvaluator:
    """
    Evaluates a standalone ``function name(a){...}`` on one string argument.

    This is the only capability the resolver receives: string in, string
    out. Any failure inside the script surfaces as ``EvaluationFailure``.
    """

    def __init__(self, max_steps: int | None = None, max_length: int | None = None):
        self._max_steps = max_steps
        self._max_length = max_length

    def evaluate(self, function_source: str, argument: str) -> str:
        m = _FUNCTION_DECL_PATTERN.search(function_source)
        if not m:
            raise EvaluationFailure("Supplied source does not declare a function")

        interpreter = JSInterpreter(
            function_source, max_steps=self._max_steps, max_length=self._max_length
        )
        try:
            result = interpreter.call_function(m.group(1), argument)
        except (
            JSInterpreterError, JSBreak, JSContinue, RecursionError, MemoryError, *_SCRIPT_FAULTS
        ) as exc:
            logger.debug("Evaluation of %s failed: %s", m.group(1), exc)
            raise EvaluationFailure(f"Evaluation of {m.group(1)!r} failed: {exc}") from exc

        if not isinstance(result, str) or not result:
            raise EvaluationFailure(
                f"Function {m.group(1)!r} returned {_to_string(result)!r} instead of a string"
            )
        return result
