"""
Restricted evaluator for the inline JavaScript Nuxt emits as ``window.__NUXT__``.

Only data-literal shaped code is understood: object, array, string and number
literals, ``true``/``false``/``null``/``undefined``, unary ``! - + void``,
function expressions with plain parameters and their invocation, member reads,
assignments, ``var``/``let``/``const`` and ``return``. Anything else raises
SandboxError. Nothing is handed to Python's ``eval``: names resolve through
function scopes and then only through the ``bindings`` mapping the caller
passes in, and every value is a dict, list, str, int, float, bool or None.

JS ``null`` and ``undefined`` both become ``None``.
"""
from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.errors import SandboxError

MAX_CALL_DEPTH = 64
MAX_ARRAY_INDEX = 1_000_000

TOKEN_RE = re.compile(r"""
    (?P<ws>\s+|//[^\n]*|/\*.*?\*/)
  | (?P<num>0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<str>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
  | (?P<name>[A-Za-z_$\u00a0-\uffff][\w$\u00a0-\uffff]*)
  | (?P<punct>[{}\[\](),:;.=!+\-])
""", re.VERBOSE | re.DOTALL)

ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|.)", re.DOTALL)

SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0",
    # line continuations
    "\n": "", "\r": "", "\r\n": "", "\u2028": "", "\u2029": "",
}

LITERALS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "NaN": math.nan,
    "Infinity": math.inf,
}

UNSUPPORTED = {
    "new", "this", "typeof", "instanceof", "delete", "in", "if", "else", "for",
    "while", "do", "switch", "case", "break", "continue", "throw", "try",
    "catch", "finally", "class", "extends", "super", "import", "export",
    "yield", "await", "async", "with", "debugger", "eval", "arguments",
}


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    pos: int


class _Deadline:
    def __init__(self, timeout: float):
        self.timeout = timeout
        self.expires = time.monotonic() + timeout

    def check(self) -> None:
        if time.monotonic() > self.expires:
            raise SandboxError(f"evaluation exceeded {self.timeout:g}s timeout")


def _unescape(body: str) -> str:
    def repl(m: re.Match) -> str:
        e = m.group(1)
        if len(e) > 1 and e[0] == "u":
            cp = int(e[2:-1] if e[1] == "{" else e[1:], 16)
            if cp > 0x10FFFF:
                raise SandboxError(f"invalid code point escape \\{e}")
            return chr(cp)
        if len(e) == 3 and e[0] == "x":
            return chr(int(e[1:], 16))
        return SIMPLE_ESCAPES.get(e, e)

    text = ESCAPE_RE.sub(repl, body)
    # \ud83d\ude00 style pairs come out as two lone surrogates
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "replace")


def _number(text: str) -> Any:
    prefix = text[:2].lower()
    if prefix == "0x":
        return int(text[2:], 16)
    if prefix == "0o":
        return int(text[2:], 8)
    if prefix == "0b":
        return int(text[2:], 2)
    if any(c in text for c in ".eE"):
        return float(text)
    return int(text)


def tokenize(source: str, deadline: Optional[_Deadline] = None) -> List[Token]:
    tokens: List[Token] = []
    pos, end = 0, len(source)
    while pos < end:
        if deadline is not None:
            deadline.check()
        m = TOKEN_RE.match(source, pos)
        if not m:
            raise SandboxError(f"unexpected character {source[pos]!r} at {pos}")
        kind = m.lastgroup
        text = m.group()
        if kind == "num":
            tokens.append(Token("num", _number(text), pos))
        elif kind == "str":
            tokens.append(Token("str", _unescape(text[1:-1]), pos))
        elif kind != "ws":
            tokens.append(Token(kind, text, pos))
        pos = m.end()
    tokens.append(Token("eof", None, end))
    return tokens


class _Parser:
    """Recursive descent over the token list, producing tuple nodes."""

    def __init__(self, tokens: List[Token], deadline: _Deadline):
        self.tokens = tokens
        self.i = 0
        self.deadline = deadline
        self.fn_depth = 0

    def peek(self) -> Token:
        return self.tokens[self.i]

    def next(self) -> Token:
        self.deadline.check()
        tok = self.tokens[self.i]
        if tok.kind != "eof":
            self.i += 1
        return tok

    def at(self, kind: str, value: Any = None) -> bool:
        tok = self.tokens[self.i]
        return tok.kind == kind and (value is None or tok.value == value)

    def eat(self, kind: str, value: Any = None) -> bool:
        if self.at(kind, value):
            self.next()
            return True
        return False

    def expect(self, kind: str, value: Any = None) -> Token:
        if not self.at(kind, value):
            self.fail(f"expected {value or kind}")
        return self.next()

    def fail(self, message: str):
        tok = self.peek()
        shown = "end of input" if tok.kind == "eof" else repr(tok.value)
        raise SandboxError(f"{message}, got {shown} at {tok.pos}")

    def program(self) -> list:
        body = []
        while not self.at("eof"):
            if self.eat("punct", ";"):
                continue
            body.append(self.statement())
        return body

    def statement(self) -> tuple:
        tok = self.peek()
        if tok.kind == "name" and tok.value == "return":
            if not self.fn_depth:
                self.fail("return outside of function")
            self.next()
            if self.at("punct", ";") or self.at("punct", "}") or self.at("eof"):
                value: tuple = ("lit", None)
            else:
                value = self.assignment()
            self.end_statement()
            return ("return", value)
        if tok.kind == "name" and tok.value in ("var", "let", "const"):
            self.next()
            decls = []
            while True:
                name = self.expect("name").value
                init = self.assignment() if self.eat("punct", "=") else ("lit", None)
                decls.append((name, init))
                if not self.eat("punct", ","):
                    break
            self.end_statement()
            return ("var", decls)
        expr = self.assignment()
        self.end_statement()
        return ("expr", expr)

    def end_statement(self) -> None:
        if self.eat("punct", ";") or self.at("punct", "}") or self.at("eof"):
            return
        self.fail("expected ;")

    def assignment(self) -> tuple:
        left = self.unary()
        if self.eat("punct", "="):
            if left[0] not in ("ident", "member"):
                self.fail("invalid assignment target")
            return ("assign", left, self.assignment())
        return left

    def unary(self) -> tuple:
        tok = self.peek()
        if tok.kind == "punct" and tok.value in ("!", "-", "+"):
            self.next()
            return ({"!": "not", "-": "neg", "+": "pos"}[tok.value], self.unary())
        if tok.kind == "name" and tok.value == "void":
            self.next()
            return ("void", self.unary())
        return self.postfix()

    def postfix(self) -> tuple:
        node = self.primary()
        while True:
            if self.eat("punct", "."):
                node = ("member", node, ("lit", self.expect("name").value))
            elif self.eat("punct", "["):
                key = self.assignment()
                self.expect("punct", "]")
                node = ("member", node, key)
            elif self.eat("punct", "("):
                node = ("call", node, self.arguments())
            else:
                return node

    def arguments(self) -> list:
        args = []
        while not self.eat("punct", ")"):
            args.append(self.assignment())
            if not self.eat("punct", ","):
                self.expect("punct", ")")
                break
        return args

    def primary(self) -> tuple:
        tok = self.peek()
        if tok.kind in ("num", "str"):
            self.next()
            return ("lit", tok.value)
        if tok.kind == "punct":
            if tok.value == "(":
                self.next()
                expr = self.assignment()
                self.expect("punct", ")")
                return expr
            if tok.value == "{":
                self.next()
                return self.object_literal()
            if tok.value == "[":
                self.next()
                return self.array_literal()
        if tok.kind == "name":
            if tok.value in LITERALS:
                self.next()
                return ("lit", LITERALS[tok.value])
            if tok.value == "function":
                self.next()
                return self.function()
            if tok.value in UNSUPPORTED:
                self.fail("unsupported syntax")
            self.next()
            return ("ident", tok.value)
        self.fail("unexpected token")

    def object_literal(self) -> tuple:
        props = []
        while not self.eat("punct", "}"):
            tok = self.peek()
            if tok.kind in ("name", "str"):
                key = tok.value
            elif tok.kind == "num":
                key = format_number(tok.value)
            else:
                self.fail("expected property name")
            self.next()
            if self.eat("punct", ":"):
                value = self.assignment()
            elif tok.kind == "name" and (self.at("punct", ",") or self.at("punct", "}")):
                value = ("ident", key)
            else:
                self.fail("expected :")
            props.append((key, value))
            if not self.eat("punct", ","):
                self.expect("punct", "}")
                break
        return ("object", props)

    def array_literal(self) -> tuple:
        items = []
        while not self.eat("punct", "]"):
            if self.eat("punct", ","):
                items.append(("lit", None))
                continue
            items.append(self.assignment())
            if not self.eat("punct", ","):
                self.expect("punct", "]")
                break
        return ("array", items)

    def function(self) -> tuple:
        name = None
        if self.at("name"):
            name = self.next().value
        self.expect("punct", "(")
        params = []
        while not self.eat("punct", ")"):
            params.append(self.expect("name").value)
            if not self.eat("punct", ","):
                self.expect("punct", ")")
                break
        self.expect("punct", "{")
        self.fn_depth += 1
        body = []
        while not self.eat("punct", "}"):
            if self.at("eof"):
                self.fail("unterminated function body")
            if self.eat("punct", ";"):
                continue
            body.append(self.statement())
        self.fn_depth -= 1
        return ("func", name, params, body)


class _Scope:
    __slots__ = ("vars", "parent")

    def __init__(self, vars: Dict[str, Any], parent: Optional["_Scope"] = None):
        self.vars = vars
        self.parent = parent

    def lookup(self, name: str) -> Optional["_Scope"]:
        scope: Optional[_Scope] = self
        while scope is not None:
            if name in scope.vars:
                return scope
            scope = scope.parent
        return None


class _Function:
    __slots__ = ("name", "params", "body", "scope")

    def __init__(self, name: Optional[str], params: List[str], body: list, scope: _Scope):
        self.name = name
        self.params = params
        self.body = body
        self.scope = scope


class _Interpreter:
    def __init__(self, global_scope: _Scope, deadline: _Deadline):
        self.global_scope = global_scope
        self.deadline = deadline
        self.depth = 0

    def exec_body(self, body: list, scope: _Scope) -> Tuple[bool, Any]:
        for stmt in body:
            kind = stmt[0]
            if kind == "return":
                return True, self.eval(stmt[1], scope)
            if kind == "var":
                for name, init in stmt[1]:
                    scope.vars[name] = self.eval(init, scope)
            else:
                self.eval(stmt[1], scope)
        return False, None

    def eval(self, node: tuple, scope: _Scope) -> Any:
        self.deadline.check()
        op = node[0]
        if op == "lit":
            return node[1]
        if op == "object":
            return {key: self.eval(value, scope) for key, value in node[1]}
        if op == "array":
            return [self.eval(item, scope) for item in node[1]]
        if op == "ident":
            found = scope.lookup(node[1])
            if found is None:
                raise SandboxError(f"{node[1]} is not defined")
            return found.vars[node[1]]
        if op == "member":
            return self.get_member(self.eval(node[1], scope), self.eval(node[2], scope))
        if op == "call":
            fn = self.eval(node[1], scope)
            args = [self.eval(arg, scope) for arg in node[2]]
            if not isinstance(fn, _Function):
                raise SandboxError("call target is not a function")
            return self.call(fn, args)
        if op == "func":
            return _Function(node[1], node[2], node[3], scope)
        if op == "not":
            return not truthy(self.eval(node[1], scope))
        if op == "neg":
            return -_to_number(self.eval(node[1], scope))
        if op == "pos":
            return _to_number(self.eval(node[1], scope))
        if op == "void":
            self.eval(node[1], scope)
            return None
        if op == "assign":
            value = self.eval(node[2], scope)
            self.assign(node[1], value, scope)
            return value
        raise SandboxError(f"unsupported node {op}")

    def call(self, fn: _Function, args: list) -> Any:
        self.depth += 1
        if self.depth > MAX_CALL_DEPTH:
            raise SandboxError("maximum call depth exceeded")
        try:
            local = _Scope({fn.name: fn} if fn.name else {}, fn.scope)
            for idx, param in enumerate(fn.params):
                local.vars[param] = args[idx] if idx < len(args) else None
            _, value = self.exec_body(fn.body, local)
            return value
        finally:
            self.depth -= 1

    def get_member(self, obj: Any, key: Any) -> Any:
        if obj is None:
            raise SandboxError(f"cannot read property {_property_key(key)!r} of undefined")
        if isinstance(obj, dict):
            return obj.get(_property_key(key))
        if isinstance(obj, (list, str)):
            if key == "length":
                return len(obj)
            idx = _index(key)
            if idx is not None and idx < len(obj):
                return obj[idx]
        return None

    def assign(self, target: tuple, value: Any, scope: _Scope) -> None:
        if target[0] == "ident":
            found = scope.lookup(target[1]) or self.global_scope
            found.vars[target[1]] = value
            return
        obj = self.eval(target[1], scope)
        key = self.eval(target[2], scope)
        if isinstance(obj, dict):
            obj[_property_key(key)] = value
        elif isinstance(obj, list):
            idx = _index(key)
            if idx is None or idx > MAX_ARRAY_INDEX:
                raise SandboxError(f"unsupported array assignment to {key!r}")
            if idx >= len(obj):
                obj.extend([None] * (idx + 1 - len(obj)))
            obj[idx] = value
        else:
            raise SandboxError(f"cannot set property {_property_key(key)!r} of {type(obj).__name__}")


def format_number(n: Any) -> str:
    """Render a number the way JavaScript's String() does for common values."""
    if isinstance(n, bool):
        return "true" if n else "false"
    if isinstance(n, int):
        return str(n)
    if math.isnan(n):
        return "NaN"
    if math.isinf(n):
        return "Infinity" if n > 0 else "-Infinity"
    if n.is_integer() and abs(n) < 1e21:
        return str(int(n))
    return repr(n)


def _property_key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if key is None:
        return "undefined"
    if isinstance(key, (bool, int, float)):
        return format_number(key)
    raise SandboxError("unsupported property key")


def _index(key: Any) -> Optional[int]:
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key if key >= 0 else None
    if isinstance(key, float):
        return int(key) if key.is_integer() and key >= 0 else None
    if isinstance(key, str) and re.fullmatch(r"0|[1-9]\d*", key):
        return int(key)
    return None


def _to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return math.nan
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return _number(text)
        except ValueError:
            return math.nan
    return math.nan


def truthy(value: Any) -> bool:
    """JavaScript truthiness: 0, NaN, "", null and undefined are false; containers are true."""
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, (int, float)):
        return not (value == 0 or value != value)
    if isinstance(value, str):
        return value != ""
    return True


def to_plain(value: Any, _memo: Optional[Dict[int, Any]] = None) -> Any:
    """Copy a recovered value into plain containers, dropping function objects."""
    if isinstance(value, _Function):
        return None
    if not isinstance(value, (dict, list)):
        return value
    memo = {} if _memo is None else _memo
    if id(value) in memo:
        return memo[id(value)]
    if isinstance(value, dict):
        out: Any = {}
        memo[id(value)] = out
        for key, item in value.items():
            out[key] = to_plain(item, memo)
    else:
        out = []
        memo[id(value)] = out
        out.extend(to_plain(item, memo) for item in value)
    return out


def run_script(source: str, bindings: Mapping[str, Any], timeout: float = 1.0) -> None:
    """Execute ``source`` against ``bindings``.

    Effects are visible only through the mutable objects in ``bindings``
    (e.g. the ``window`` dict); a top-level name assigned without
    declaration lands in a private global scope.

    Raises:
        SandboxError: on unsupported syntax, runtime failure or timeout.
    """
    deadline = _Deadline(timeout)
    try:
        body = _Parser(tokenize(source, deadline), deadline).program()
        interpreter = _Interpreter(_Scope(dict(bindings)), deadline)
        interpreter.exec_body(body, interpreter.global_scope)
    except SandboxError:
        raise
    except RecursionError as e:
        raise SandboxError("expression nested too deeply") from e
    except Exception as e:
        raise SandboxError(f"evaluation failed: {e}") from e
