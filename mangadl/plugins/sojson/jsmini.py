# mangadl - A plugin-based manga downloading tool.
# Copyright (C) 2016 Mino <mino@minomino.org>

# This file is part of mangadl.

# mangadl is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# mangadl is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with mangadl. If not, see <http://www.gnu.org/licenses/>.

import functools
import inspect
import logging
import math
import time
import re

from collections import namedtuple
from urllib.parse import quote, unquote

"""
A tiny JavaScript interpreter, just big enough to run the image key routine that
chapter.js ships for scrambled pages.

Only a small subset of ES5 is implemented: var/let/const (all function scoped),
functions and closures, if/for/while/do-while, the usual operators, string, array
and number methods, regex literals and a few globals such as parseInt and Math.
There are no prototypes, no 'this', no exceptions and no labels. Anything outside
of the subset is a syntax or runtime error, which JSEvaluator turns into an empty
result, the same way a sandbox that failed to run the script would.

Values map onto Python as follows: numbers are floats, strings are str, booleans
are bool, null is None, undefined is UNDEFINED, arrays are JSArray and objects
are JSObject.

"""

class JSError(Exception):
    pass

class JSSyntaxError(JSError):
    pass

class JSTimeoutError(JSError):
    pass

class _Undefined:
    __slots__ = ()

    def __repr__(self):
        return "undefined"

    def __bool__(self):
        return False

UNDEFINED = _Undefined()

class JSArray(list):
    pass

class JSObject(dict):
    pass

@functools.lru_cache(maxsize=None)
def _positional_arity(fn):
    """How many positional arguments fn takes, or None if it takes any number."""
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return None
    if any(p.kind == p.VAR_POSITIONAL for p in params):
        return None
    return sum(1 for p in params if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD))

class NativeFunction:
    """
    A Python callable exposed to JS, optionally carrying properties (e.g. String.fromCharCode).
    Surplus arguments are dropped, as JS functions ignore them.

    """
    def __init__(self, fn, **props):
        self._fn = fn
        self.props = props
        if isinstance(fn, functools.partial):
            arity = _positional_arity(fn.func)
            self._arity = None if arity is None else max(arity - len(fn.args), 0)
        else:
            self._arity = _positional_arity(fn)

    def __call__(self, *args):
        if self._arity is not None:
            args = args[:self._arity]
        return self._fn(*args)

class JSFunction:
    def __init__(self, name, params, body, scope, interpreter):
        self.name = name
        self.params = params
        self.body = body
        self.scope = scope
        self._interpreter = interpreter

    def __call__(self, *args):
        return self._interpreter.call_function(self, list(args))

    def __repr__(self):
        return "<JSFunction {}>".format(self.name or "anonymous")

class JSRegExp:
    def __init__(self, source, flags=""):
        self.source = source
        self.flags = flags
        self.last_index = 0
        pyflags = 0
        if "i" in flags:
            pyflags |= re.IGNORECASE
        if "m" in flags:
            pyflags |= re.MULTILINE
        if "s" in flags:
            pyflags |= re.DOTALL
        try:
            # Named groups are the only syntax that needs translating for what we see in the wild.
            self.pattern = re.compile(re.sub(r"\(\?<(?![=!])", "(?P<", source), pyflags)
        except re.error as e:
            raise JSSyntaxError("Invalid regular expression /{}/: {}".format(source, e))

    @property
    def is_global(self):
        return "g" in self.flags

# Control flow signals. They subclass JSError so a stray one ends up reported as a failure.

class BreakSignal(JSError):
    pass

class ContinueSignal(JSError):
    pass

class ReturnSignal(JSError):
    def __init__(self, value):
        self.value = value

# ====================================================================
#                              TOKENIZER
# ====================================================================

Token = namedtuple("Token", ["type", "value", "pos"])

KEYWORDS = {"var", "let", "const", "function", "return", "if", "else", "for", "while", "do",
            "break", "continue", "new", "typeof", "void", "delete", "in", "true", "false",
            "null", "undefined", "this"}

PUNCTUATORS = sorted(["{", "}", "(", ")", "[", "]", ";", ",", ".", "?", ":", "~",
    "<", ">", "<=", ">=", "==", "!=", "===", "!==", "+", "-", "*", "/", "%", "++", "--",
    "<<", ">>", ">>>", "&", "|", "^", "!", "&&", "||", "=", "+=", "-=", "*=", "/=", "%=",
    "<<=", ">>=", ">>>=", "&=", "|=", "^="], key=len, reverse=True)

RE_NUMBER = re.compile(r"0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
RE_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")
RE_REGEX_FLAGS = re.compile(r"[a-z]*")
DECIMAL_DIGITS = "0123456789"

SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}

def _read_string(source, i):
    quote_char = source[i]
    out = []
    i += 1
    while i < len(source):
        c = source[i]
        if c == quote_char:
            return "".join(out), i + 1
        if c == "\n":
            break
        if c != "\\":
            out.append(c)
            i += 1
            continue

        esc = source[i + 1:i + 2]
        i += 2
        if esc in SIMPLE_ESCAPES:
            out.append(SIMPLE_ESCAPES[esc])
        elif esc in ("x", "u"):
            width = 2 if esc == "x" else 4
            try:
                out.append(chr(int(source[i:i + width], 16)))
            except ValueError:
                raise JSSyntaxError("Invalid escape sequence at {}.".format(i))
            i += width
        elif esc == "\n":
            # Line continuation.
            pass
        else:
            out.append(esc)

    raise JSSyntaxError("Unterminated string literal at {}.".format(i))

def _read_regex(source, i):
    j = i + 1
    in_class = False
    while j < len(source):
        c = source[j]
        if c == "\\":
            j += 2
            continue
        if c == "\n":
            break
        if c == "[":
            in_class = True
        elif c == "]":
            in_class = False
        elif c == "/" and not in_class:
            flags = RE_REGEX_FLAGS.match(source, j + 1).group()
            return (source[i + 1:j], flags), j + 1 + len(flags)
        j += 1

    raise JSSyntaxError("Unterminated regular expression at {}.".format(i))

def _regex_allowed(tokens):
    """A slash starts a regex unless it follows something that ends an operand."""
    if not tokens:
        return True
    last = tokens[-1]
    if last.type in ("num", "str", "name", "regex"):
        return False
    if last.type == "keyword":
        return last.value not in ("true", "false", "null", "undefined", "this")

    return last.value not in (")", "]", "}")

def tokenize(source):
    tokens = []
    i = 0
    n = len(source)
    while i < n:
        c = source[i]
        if c.isspace():
            i += 1
        elif source.startswith("//", i):
            end = source.find("\n", i)
            i = n if end == -1 else end
        elif source.startswith("/*", i):
            end = source.find("*/", i + 2)
            if end == -1:
                raise JSSyntaxError("Unterminated comment at {}.".format(i))
            i = end + 2
        elif c in DECIMAL_DIGITS or (c == "." and source[i + 1:i + 2] in DECIMAL_DIGITS and i + 1 < n):
            text = RE_NUMBER.match(source, i).group()
            value = float(int(text, 16)) if text[:2] in ("0x", "0X") else float(text)
            tokens.append(Token("num", value, i))
            i += len(text)
        elif c in "\"'":
            value, end = _read_string(source, i)
            tokens.append(Token("str", value, i))
            i = end
        elif RE_IDENTIFIER.match(source, i):
            word = RE_IDENTIFIER.match(source, i).group()
            tokens.append(Token("keyword" if word in KEYWORDS else "name", word, i))
            i += len(word)
        elif c == "/" and _regex_allowed(tokens):
            value, end = _read_regex(source, i)
            tokens.append(Token("regex", value, i))
            i = end
        else:
            for p in PUNCTUATORS:
                if source.startswith(p, i):
                    tokens.append(Token("punct", p, i))
                    i += len(p)
                    break
            else:
                raise JSSyntaxError("Unexpected character {!r} at {}.".format(c, i))

    tokens.append(Token("eof", None, n))
    return tokens

# ====================================================================
#                               PARSER
# ====================================================================

# Nodes are plain tuples whose first item is the node type.

BINARY_PRECEDENCE = {
    "||": 1, "&&": 2, "|": 3, "^": 4, "&": 5,
    "==": 6, "!=": 6, "===": 6, "!==": 6,
    "<": 7, ">": 7, "<=": 7, ">=": 7,
    "<<": 8, ">>": 8, ">>>": 8,
    "+": 9, "-": 9,
    "*": 10, "/": 10, "%": 10,
}

ASSIGNMENT_OPERATORS = {"=", "+=", "-=", "*=", "/=", "%=", "<<=", ">>=", ">>>=", "&=", "|=", "^="}

class Parser:
    def __init__(self, tokens):
        self._tokens = tokens
        self._pos = 0

    def peek(self):
        return self._tokens[self._pos]

    def peek_ahead(self, offset):
        return self._tokens[min(self._pos + offset, len(self._tokens) - 1)]

    def next(self):
        tok = self._tokens[self._pos]
        if tok.type != "eof":
            self._pos += 1
        return tok

    def at(self, value, type=None):
        tok = self.peek()
        if type is not None and tok.type != type:
            return False
        return tok.type in ("punct", "keyword") and tok.value == value

    def accept(self, value):
        if self.at(value):
            return self.next()
        return None

    def expect(self, value):
        tok = self.next()
        if tok.type not in ("punct", "keyword") or tok.value != value:
            raise JSSyntaxError("Expected {!r} at {}, got {!r}.".format(value, tok.pos, tok.value))
        return tok

    def expect_name(self):
        tok = self.next()
        if tok.type != "name":
            raise JSSyntaxError("Expected an identifier at {}, got {!r}.".format(tok.pos, tok.value))
        return tok.value

    def parse_program(self):
        body = []
        while self.peek().type != "eof":
            body.append(self.parse_statement())
        return body

    def _end_statement(self):
        # Missing semicolons are forgiven everywhere, which is close enough to ASI for us.
        self.accept(";")

    def parse_statement(self):
        tok = self.peek()
        if tok.type == "punct":
            if tok.value == "{":
                return ("block", self.parse_block())
            if tok.value == ";":
                self.next()
                return ("empty",)
        elif tok.type == "keyword":
            kw = tok.value
            if kw in ("var", "let", "const"):
                node = self.parse_var()
                self._end_statement()
                return node
            if kw == "function" and self.peek_ahead(1).type == "name":
                self.next()
                name, params, body = self.parse_function_rest(require_name=True)
                return ("func_decl", name, params, body)
            if kw == "return":
                self.next()
                value = None
                if not (self.at(";") or self.at("}") or self.peek().type == "eof"):
                    value = self.parse_expression()
                self._end_statement()
                return ("return", value)
            if kw == "if":
                self.next()
                self.expect("(")
                test = self.parse_expression()
                self.expect(")")
                consequent = self.parse_statement()
                alternate = self.parse_statement() if self.accept("else") else None
                return ("if", test, consequent, alternate)
            if kw == "for":
                return self.parse_for()
            if kw == "while":
                self.next()
                self.expect("(")
                test = self.parse_expression()
                self.expect(")")
                return ("while", test, self.parse_statement())
            if kw == "do":
                self.next()
                body = self.parse_statement()
                self.expect("while")
                self.expect("(")
                test = self.parse_expression()
                self.expect(")")
                self._end_statement()
                return ("do_while", body, test)
            if kw in ("break", "continue"):
                self.next()
                self._end_statement()
                return (kw,)

        node = ("expr", self.parse_expression())
        self._end_statement()
        return node

    def parse_block(self):
        self.expect("{")
        body = []
        while not self.at("}"):
            if self.peek().type == "eof":
                raise JSSyntaxError("Unexpected end of input, expected '}'.")
            body.append(self.parse_statement())
        self.next()
        return body

    def parse_var(self):
        self.next()
        declarations = []
        while True:
            name = self.expect_name()
            init = self.parse_assignment() if self.accept("=") else None
            declarations.append((name, init))
            if not self.accept(","):
                return ("var", declarations)

    def parse_for(self):
        self.expect("for")
        self.expect("(")
        init = None
        if self.peek().type == "keyword" and self.peek().value in ("var", "let", "const"):
            if self.peek_ahead(2).value == "in":
                self.next()
                name = self.expect_name()
                return self._parse_for_in(name)
            init = self.parse_var()
        elif self.peek().type == "name" and self.peek_ahead(1).value == "in":
            return self._parse_for_in(self.expect_name())
        elif not self.at(";"):
            init = self.parse_expression()
        self.expect(";")
        test = None if self.at(";") else self.parse_expression()
        self.expect(";")
        update = None if self.at(")") else self.parse_expression()
        self.expect(")")
        return ("for", init, test, update, self.parse_statement())

    def _parse_for_in(self, name):
        self.expect("in")
        obj = self.parse_expression()
        self.expect(")")
        return ("for_in", name, obj, self.parse_statement())

    def parse_function_rest(self, require_name=False):
        name = None
        if self.peek().type == "name":
            name = self.next().value
        elif require_name:
            raise JSSyntaxError("Function declarations need a name.")
        self.expect("(")
        params = []
        while not self.at(")"):
            params.append(self.expect_name())
            if not self.accept(","):
                break
        self.expect(")")
        return name, params, self.parse_block()

    def parse_expression(self):
        expr = self.parse_assignment()
        if not self.at(","):
            return expr

        exprs = [expr]
        while self.accept(","):
            exprs.append(self.parse_assignment())
        return ("seq", exprs)

    def parse_assignment(self):
        left = self.parse_conditional()
        tok = self.peek()
        if tok.type == "punct" and tok.value in ASSIGNMENT_OPERATORS:
            if left[0] not in ("name", "member"):
                raise JSSyntaxError("Invalid assignment target at {}.".format(tok.pos))
            self.next()
            return ("assign", tok.value, left, self.parse_assignment())
        return left

    def parse_conditional(self):
        test = self.parse_binary(1)
        if not self.accept("?"):
            return test
        consequent = self.parse_assignment()
        self.expect(":")
        return ("cond", test, consequent, self.parse_assignment())

    def parse_binary(self, min_precedence):
        left = self.parse_unary()
        while True:
            tok = self.peek()
            precedence = BINARY_PRECEDENCE.get(tok.value) if tok.type == "punct" else None
            if precedence is None or precedence < min_precedence:
                return left
            self.next()
            right = self.parse_binary(precedence + 1)
            kind = "logical" if tok.value in ("&&", "||") else "binary"
            left = (kind, tok.value, left, right)

    def parse_unary(self):
        tok = self.peek()
        if tok.type == "punct" and tok.value in ("!", "-", "+", "~"):
            self.next()
            return ("unary", tok.value, self.parse_unary())
        if tok.type == "keyword" and tok.value in ("typeof", "void", "delete"):
            self.next()
            return ("unary", tok.value, self.parse_unary())
        if tok.type == "punct" and tok.value in ("++", "--"):
            self.next()
            return ("update", tok.value, True, self.parse_unary())

        expr = self.parse_call_member()
        tok = self.peek()
        if tok.type == "punct" and tok.value in ("++", "--"):
            self.next()
            return ("update", tok.value, False, expr)
        return expr

    def parse_arguments(self):
        self.expect("(")
        args = []
        while not self.at(")"):
            args.append(self.parse_assignment())
            if not self.accept(","):
                break
        self.expect(")")
        return args

    def parse_call_member(self):
        if self.accept("new"):
            callee = self.parse_primary()
            while self.at(".") or self.at("["):
                callee = self._parse_member(callee)
            args = self.parse_arguments() if self.at("(") else []
            expr = ("new", callee, args)
        else:
            expr = self.parse_primary()

        while True:
            if self.at(".") or self.at("["):
                expr = self._parse_member(expr)
            elif self.at("("):
                expr = ("call", expr, self.parse_arguments())
            else:
                return expr

    def _parse_member(self, obj):
        if self.accept("."):
            tok = self.next()
            if tok.type not in ("name", "keyword"):
                raise JSSyntaxError("Expected a property name at {}.".format(tok.pos))
            return ("member", obj, ("str", tok.value))
        self.expect("[")
        prop = self.parse_expression()
        self.expect("]")
        return ("member", obj, prop)

    def parse_primary(self):
        tok = self.next()
        if tok.type == "num":
            return ("num", tok.value)
        if tok.type == "str":
            return ("str", tok.value)
        if tok.type == "regex":
            return ("regex",) + tok.value
        if tok.type == "name":
            return ("name", tok.value)
        if tok.type == "keyword":
            if tok.value == "true":
                return ("const", True)
            if tok.value == "false":
                return ("const", False)
            if tok.value == "null":
                return ("const", None)
            if tok.value in ("undefined", "this"):
                return ("const", UNDEFINED)
            if tok.value == "function":
                return ("func",) + self.parse_function_rest()
        if tok.type == "punct":
            if tok.value == "(":
                expr = self.parse_expression()
                self.expect(")")
                return expr
            if tok.value == "[":
                elements = []
                while not self.at("]"):
                    if self.at(","):
                        self.next()
                        elements.append(("const", UNDEFINED))
                        continue
                    elements.append(self.parse_assignment())
                    if not self.accept(","):
                        break
                self.expect("]")
                return ("array", elements)
            if tok.value == "{":
                return self._parse_object()

        raise JSSyntaxError("Unexpected token {!r} at {}.".format(tok.value, tok.pos))

    def _parse_object(self):
        properties = []
        while not self.at("}"):
            key = self.next()
            if key.type == "num":
                name = number_to_string(key.value)
            elif key.type in ("name", "str", "keyword"):
                name = key.value
            else:
                raise JSSyntaxError("Unexpected token {!r} in object literal at {}.".format(key.value, key.pos))
            self.expect(":")
            properties.append((name, self.parse_assignment()))
            if not self.accept(","):
                break
        self.expect("}")
        return ("object", properties)

# ====================================================================
#                           TYPE CONVERSION
# ====================================================================

def is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)

def typeof(value):
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value):
        return "function"
    return "object"

def to_boolean(value):
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return len(value) > 0
    return True

RE_NUMERIC_STRING = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

def to_number(value):
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        return float(value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if re.fullmatch(r"0[xX][0-9a-fA-F]+", text):
            return float(int(text, 16))
        if RE_NUMERIC_STRING.fullmatch(text):
            return float(text.replace("Infinity", "inf"))
        return math.nan
    if isinstance(value, JSArray):
        return to_number(to_string(value))
    return math.nan

def to_integer(value, default=0):
    if value is UNDEFINED:
        return default
    n = to_number(value)
    if math.isnan(n):
        return 0
    if math.isinf(n):
        return 2 ** 53 if n > 0 else -2 ** 53
    return int(n)

def to_int32(value):
    n = to_number(value)
    if math.isnan(n) or math.isinf(n):
        return 0
    n = int(n) & 0xFFFFFFFF
    return n - 0x100000000 if n >= 0x80000000 else n

def to_uint32(value):
    return to_int32(value) & 0xFFFFFFFF

DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
# Cuts off fractions that never terminate in the given radix.
MAX_FRACTION_DIGITS = 52

def number_to_string(value, radix=10):
    if not 2 <= radix <= 36:
        raise JSError("RangeError: toString() radix must be between 2 and 36")
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if radix != 10:
        sign = "-" if value < 0 else ""
        value = abs(value)
        n = int(value)
        fraction = value - n
        out = ""
        while True:
            n, rem = divmod(n, radix)
            out = DIGITS[rem] + out
            if not n:
                break
        if fraction:
            out += "."
            for _ in range(MAX_FRACTION_DIGITS):
                fraction *= radix
                digit = int(fraction)
                out += DIGITS[digit]
                fraction -= digit
                if not fraction:
                    break
        return sign + out
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    # Python pads exponents with a zero, JS doesn't.
    return re.sub(r"e([+-])0*(\d)", r"e\1\2", repr(float(value)))

def to_string(value):
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return number_to_string(float(value))
    if isinstance(value, str):
        return value
    if isinstance(value, JSArray):
        return ",".join("" if v is None or v is UNDEFINED else to_string(v) for v in value)
    if isinstance(value, JSRegExp):
        return "/{}/{}".format(value.source, value.flags)
    if callable(value):
        return "function () { [native code] }"
    return "[object Object]"

def to_primitive(value):
    if isinstance(value, (JSArray, JSObject, JSRegExp)) or callable(value):
        return to_string(value)
    return value

def strict_equals(a, b):
    if is_number(a) and is_number(b):
        return a == b
    if type(a) is not type(b):
        return False
    if isinstance(a, (str, bool)):
        return a == b
    return a is b

def loose_equals(a, b):
    if (a is None or a is UNDEFINED) and (b is None or b is UNDEFINED):
        return True
    if a is None or a is UNDEFINED or b is None or b is UNDEFINED:
        return False
    if isinstance(a, bool) or isinstance(b, bool):
        return loose_equals(to_number(a) if isinstance(a, bool) else a,
                            to_number(b) if isinstance(b, bool) else b)
    if is_number(a) and isinstance(b, str) or isinstance(a, str) and is_number(b):
        return to_number(a) == to_number(b)
    if isinstance(a, (JSArray, JSObject)) != isinstance(b, (JSArray, JSObject)):
        return loose_equals(to_primitive(a), to_primitive(b))
    return strict_equals(a, b)

def _divide(a, b):
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1, b)
    return a / b

def _modulo(a, b):
    if b == 0 or math.isnan(a) or math.isnan(b) or math.isinf(a):
        return math.nan
    return math.fmod(a, b)

def _compare(op, a, b):
    a = to_primitive(a)
    b = to_primitive(b)
    if not (isinstance(a, str) and isinstance(b, str)):
        a = to_number(a)
        b = to_number(b)
        if math.isnan(a) or math.isnan(b):
            return False
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    return a >= b

def binary_op(op, a, b):
    if op == "+":
        a = to_primitive(a)
        b = to_primitive(b)
        if isinstance(a, str) or isinstance(b, str):
            return to_string(a) + to_string(b)
        return to_number(a) + to_number(b)
    if op == "-":
        return to_number(a) - to_number(b)
    if op == "*":
        return to_number(a) * to_number(b)
    if op == "/":
        return _divide(to_number(a), to_number(b))
    if op == "%":
        return _modulo(to_number(a), to_number(b))
    if op in ("<", ">", "<=", ">="):
        return _compare(op, a, b)
    if op == "==":
        return loose_equals(a, b)
    if op == "!=":
        return not loose_equals(a, b)
    if op == "===":
        return strict_equals(a, b)
    if op == "!==":
        return not strict_equals(a, b)
    if op == "&":
        return float(to_int32(a) & to_int32(b))
    if op == "|":
        return float(to_int32(a) | to_int32(b))
    if op == "^":
        return float(to_int32(a) ^ to_int32(b))
    if op == "<<":
        return float(to_int32(to_int32(a) << (to_uint32(b) & 31)))
    if op == ">>":
        return float(to_int32(a) >> (to_uint32(b) & 31))
    if op == ">>>":
        return float(to_uint32(a) >> (to_uint32(b) & 31))

    raise JSError("Unsupported operator: {}".format(op))

# ====================================================================
#                          BUILT-IN METHODS
# ====================================================================

def _arg(args, i):
    return args[i] if i < len(args) else UNDEFINED

def _relative_index(value, length, default):
    if value is UNDEFINED:
        return default
    i = to_integer(value)
    return max(length + i, 0) if i < 0 else min(i, length)

def _to_regexp(value):
    return value if isinstance(value, JSRegExp) else JSRegExp(re.escape(to_string(value)))

def _expand_replacement(template, match):
    def sub(m):
        token = m.group(1)
        if token == "$":
            return "$"
        if token == "&":
            return match.group(0)
        index = int(token)
        if index <= len(match.groups()):
            return match.group(index) or ""
        return m.group(0)
    return re.sub(r"\$(\$|&|\d{1,2})", sub, template)

def _regexp_exec(regexp, s):
    start = regexp.last_index if regexp.is_global else 0
    m = regexp.pattern.search(s, start) if start <= len(s) else None
    if m is None:
        regexp.last_index = 0
        return None
    if regexp.is_global:
        regexp.last_index = m.end() if m.end() > m.start() else m.end() + 1
    return JSArray([m.group(0)] + [UNDEFINED if g is None else g for g in m.groups()])

def _str_split(s, separator=UNDEFINED, limit=UNDEFINED):
    if separator is UNDEFINED:
        parts = [s]
    elif isinstance(separator, JSRegExp):
        parts = [UNDEFINED if p is None else p for p in separator.pattern.split(s)]
    elif to_string(separator) == "":
        parts = list(s)
    else:
        parts = s.split(to_string(separator))
    if limit is not UNDEFINED:
        parts = parts[:to_uint32(limit)]
    return JSArray(parts)

def _str_replace(s, pattern, replacement=UNDEFINED):
    def replace_match(m):
        if callable(replacement):
            groups = [UNDEFINED if g is None else g for g in m.groups()]
            return to_string(replacement(m.group(0), *groups, float(m.start()), s))
        return _expand_replacement(to_string(replacement), m)

    if isinstance(pattern, JSRegExp):
        return pattern.pattern.sub(replace_match, s, count=0 if pattern.is_global else 1)
    return re.sub(re.escape(to_string(pattern)), replace_match, s, count=1)

def _str_match(s, pattern=UNDEFINED):
    regexp = _to_regexp("" if pattern is UNDEFINED else pattern)
    if not regexp.is_global:
        return _regexp_exec(regexp, s)
    found = JSArray(m.group(0) for m in regexp.pattern.finditer(s))
    return found or None

def _str_search(s, pattern=UNDEFINED):
    m = _to_regexp(pattern).pattern.search(s)
    return float(m.start()) if m else -1.0

def _str_substr(s, start=UNDEFINED, length=UNDEFINED):
    start = _relative_index(start, len(s), 0)
    length = len(s) - start if length is UNDEFINED else max(to_integer(length), 0)
    return s[start:start + length]

def _str_substring(s, start=UNDEFINED, end=UNDEFINED):
    start = min(max(to_integer(start), 0), len(s))
    end = len(s) if end is UNDEFINED else min(max(to_integer(end), 0), len(s))
    if start > end:
        start, end = end, start
    return s[start:end]

def _str_last_index_of(s, sub, position=UNDEFINED):
    sub = to_string(sub)
    end = len(s) if position is UNDEFINED else min(max(to_integer(position), 0), len(s))
    return float(s.rfind(sub, 0, end + len(sub)))

def _char_at(s, pos=UNDEFINED):
    i = to_integer(pos)
    return s[i] if 0 <= i < len(s) else ""

def _char_code_at(s, pos=UNDEFINED):
    i = to_integer(pos)
    return float(ord(s[i])) if 0 <= i < len(s) else math.nan

STRING_METHODS = {
    "charAt": _char_at,
    "charCodeAt": _char_code_at,
    "indexOf": lambda s, sub=UNDEFINED, start=UNDEFINED: float(s.find(to_string(sub), min(max(to_integer(start), 0), len(s)))),
    "lastIndexOf": _str_last_index_of,
    "substr": _str_substr,
    "substring": _str_substring,
    "slice": lambda s, start=UNDEFINED, end=UNDEFINED: s[_relative_index(start, len(s), 0):_relative_index(end, len(s), len(s))],
    "split": _str_split,
    "replace": _str_replace,
    "match": _str_match,
    "search": _str_search,
    "toUpperCase": lambda s: s.upper(),
    "toLowerCase": lambda s: s.lower(),
    "trim": lambda s: s.strip(),
    "concat": lambda s, *args: s + "".join(to_string(a) for a in args),
    "toString": lambda s: s,
}

def _array_splice(arr, start=UNDEFINED, delete_count=UNDEFINED, *items):
    start = _relative_index(start, len(arr), 0)
    count = len(arr) - start if delete_count is UNDEFINED else min(max(to_integer(delete_count), 0), len(arr) - start)
    removed = JSArray(arr[start:start + count])
    arr[start:start + count] = items
    return removed

def _array_sort(arr, compare=UNDEFINED):
    if compare is UNDEFINED:
        values = [v for v in arr if v is not UNDEFINED]
        values.sort(key=to_string)
    else:
        def cmp(a, b):
            n = to_number(compare(a, b))
            return 0 if math.isnan(n) else (n > 0) - (n < 0)
        values = [v for v in arr if v is not UNDEFINED]
        values.sort(key=functools.cmp_to_key(cmp))
    arr[:] = values + [UNDEFINED] * (len(arr) - len(values))
    return arr

def _array_concat(arr, *args):
    out = JSArray(arr)
    for a in args:
        if isinstance(a, JSArray):
            out.extend(a)
        else:
            out.append(a)
    return out

def _array_push(arr, *items):
    arr.extend(items)
    return float(len(arr))

def _array_unshift(arr, *items):
    arr[0:0] = items
    return float(len(arr))

def _array_reverse(arr):
    arr.reverse()
    return arr

def _array_for_each(arr, fn):
    for i, v in enumerate(list(arr)):
        fn(v, float(i), arr)
    return UNDEFINED

ARRAY_METHODS = {
    "push": _array_push,
    "pop": lambda arr: arr.pop() if arr else UNDEFINED,
    "shift": lambda arr: arr.pop(0) if arr else UNDEFINED,
    "unshift": _array_unshift,
    "join": lambda arr, sep=UNDEFINED: to_string(arr) if sep is UNDEFINED else to_string(sep).join(
        "" if v is None or v is UNDEFINED else to_string(v) for v in arr),
    "slice": lambda arr, start=UNDEFINED, end=UNDEFINED: JSArray(arr[_relative_index(start, len(arr), 0):_relative_index(end, len(arr), len(arr))]),
    "concat": _array_concat,
    "indexOf": lambda arr, item=UNDEFINED: float(next((i for i, v in enumerate(arr) if strict_equals(v, item)), -1)),
    "reverse": _array_reverse,
    "splice": _array_splice,
    "sort": _array_sort,
    "map": lambda arr, fn: JSArray(fn(v, float(i), arr) for i, v in enumerate(list(arr))),
    "forEach": _array_for_each,
    "toString": to_string,
}

NUMBER_METHODS = {
    "toString": lambda n, radix=UNDEFINED: number_to_string(n, 10 if radix is UNDEFINED else to_integer(radix)),
    "toFixed": lambda n, digits=UNDEFINED: "{:.{}f}".format(n, to_integer(digits)),
}

REGEXP_METHODS = {
    "test": lambda r, s=UNDEFINED: _regexp_exec(r, to_string(s)) is not None,
    "exec": lambda r, s=UNDEFINED: _regexp_exec(r, to_string(s)),
}

def _parse_int(value=UNDEFINED, radix=UNDEFINED):
    s = to_string(value).strip()
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    radix = to_int32(radix) if radix is not UNDEFINED else 0
    if radix == 0:
        radix = 16 if s[:2].lower() == "0x" else 10
    if radix == 16 and s[:2].lower() == "0x":
        s = s[2:]
    if not 2 <= radix <= 36:
        return math.nan
    valid = DIGITS[:radix]
    end = 0
    while end < len(s) and s[end].lower() in valid:
        end += 1
    if not end:
        return math.nan
    return float(sign * int(s[:end], radix))

def _parse_float(value=UNDEFINED):
    m = RE_NUMERIC_STRING.match(to_string(value).strip())
    return to_number(m.group()) if m else math.nan

def _math_extreme(pick, empty):
    def fn(*args):
        values = [to_number(a) for a in args]
        if any(math.isnan(v) for v in values):
            return math.nan
        return pick(values) if values else empty
    return fn

def _array_constructor(*args):
    if len(args) == 1 and is_number(args[0]):
        return JSArray([UNDEFINED] * to_integer(args[0]))
    return JSArray(args)

def _math_round(x=UNDEFINED):
    n = to_number(x)
    return n if math.isnan(n) or math.isinf(n) else float(math.floor(n + 0.5))

def _finite(fn):
    """Wraps an int-returning math function so NaN and Infinity pass through."""
    def wrapper(x=UNDEFINED):
        n = to_number(x)
        return n if math.isnan(n) or math.isinf(n) else float(fn(n))
    return wrapper

MATH = JSObject({
    "PI": math.pi,
    "E": math.e,
    "floor": NativeFunction(_finite(math.floor)),
    "ceil": NativeFunction(_finite(math.ceil)),
    "round": NativeFunction(_math_round),
    "abs": NativeFunction(lambda x=UNDEFINED: abs(to_number(x))),
    "max": NativeFunction(_math_extreme(max, -math.inf)),
    "min": NativeFunction(_math_extreme(min, math.inf)),
    "pow": NativeFunction(lambda x=UNDEFINED, y=UNDEFINED: _power(to_number(x), to_number(y))),
    "sqrt": NativeFunction(lambda x=UNDEFINED: math.sqrt(to_number(x)) if to_number(x) >= 0 else math.nan),
})

def _power(x, y):
    try:
        result = x ** y
    except (OverflowError, ZeroDivisionError):
        return math.inf
    # Negative bases with fractional exponents give complex numbers in Python.
    return math.nan if isinstance(result, complex) else float(result)

def make_globals():
    return {
        "parseInt": NativeFunction(_parse_int),
        "parseFloat": NativeFunction(_parse_float),
        "isNaN": NativeFunction(lambda x=UNDEFINED: math.isnan(to_number(x))),
        "String": NativeFunction(lambda x="": to_string(x),
            fromCharCode=NativeFunction(lambda *codes: "".join(chr(to_uint32(c) & 0xFFFF) for c in codes))),
        "Number": NativeFunction(lambda x=0.0: to_number(x)),
        "Array": NativeFunction(_array_constructor),
        "RegExp": NativeFunction(lambda source="", flags="": JSRegExp(to_string(source), to_string(flags))),
        "Object": NativeFunction(lambda: JSObject()),
        "Math": JSObject(MATH),
        "encodeURIComponent": NativeFunction(lambda s=UNDEFINED: quote(to_string(s), safe="-_.!~*'()")),
        "decodeURIComponent": NativeFunction(lambda s=UNDEFINED: unquote(to_string(s))),
        "NaN": math.nan,
        "Infinity": math.inf,
    }

def _array_index(key):
    if is_number(key) and key >= 0 and key == int(key):
        return int(key)
    if isinstance(key, str) and key.isdigit():
        return int(key)
    return None

def get_member(obj, key):
    if obj is UNDEFINED or obj is None:
        raise JSError("Cannot read property '{}' of {}".format(to_string(key), to_string(obj)))

    if isinstance(obj, str):
        index = _array_index(key)
        if index is not None:
            return obj[index] if index < len(obj) else UNDEFINED
        name = to_string(key)
        if name == "length":
            return float(len(obj))
        if name in STRING_METHODS:
            return NativeFunction(functools.partial(STRING_METHODS[name], obj))
    elif isinstance(obj, JSArray):
        index = _array_index(key)
        if index is not None:
            return obj[index] if index < len(obj) else UNDEFINED
        name = to_string(key)
        if name == "length":
            return float(len(obj))
        if name in ARRAY_METHODS:
            return NativeFunction(functools.partial(ARRAY_METHODS[name], obj))
    elif isinstance(obj, JSObject):
        return obj.get(to_string(key), UNDEFINED)
    elif is_number(obj):
        name = to_string(key)
        if name in NUMBER_METHODS:
            return NativeFunction(functools.partial(NUMBER_METHODS[name], float(obj)))
    elif isinstance(obj, JSRegExp):
        name = to_string(key)
        if name in REGEXP_METHODS:
            return NativeFunction(functools.partial(REGEXP_METHODS[name], obj))
        if name == "lastIndex":
            return float(obj.last_index)
        if name == "source":
            return obj.source
        if name == "global":
            return obj.is_global
    elif isinstance(obj, NativeFunction):
        return obj.props.get(to_string(key), UNDEFINED)

    return UNDEFINED

def set_member(obj, key, value):
    if isinstance(obj, JSArray):
        index = _array_index(key)
        if index is not None:
            if index >= len(obj):
                obj.extend([UNDEFINED] * (index + 1 - len(obj)))
            obj[index] = value
            return
        if to_string(key) == "length":
            length = to_integer(value)
            del obj[length:]
            obj.extend([UNDEFINED] * (length - len(obj)))
            return
    elif isinstance(obj, JSObject):
        obj[to_string(key)] = value
        return
    elif isinstance(obj, JSRegExp) and to_string(key) == "lastIndex":
        obj.last_index = to_integer(value)
        return
    elif isinstance(obj, str) or is_number(obj) or isinstance(obj, bool):
        # Writes to primitives are silently dropped.
        return

    raise JSError("Cannot set property '{}' of {}".format(to_string(key), to_string(obj)))

# ====================================================================
#                             INTERPRETER
# ====================================================================

class Scope:
    """A function scope. Blocks don't get their own scope, so let/const behave like var."""
    def __init__(self, parent=None):
        self.vars = {}
        self.parent = parent

    def lookup(self, name):
        scope = self
        while scope is not None:
            if name in scope.vars:
                return scope
            scope = scope.parent
        return None

class Interpreter:
    def __init__(self, timeout=None):
        self._deadline = None if timeout is None else time.monotonic() + timeout
        self.globals = Scope()
        self.globals.vars.update(make_globals())

    def run(self, source):
        """Runs a program and returns the value of its last expression statement."""
        program = Parser(tokenize(source)).parse_program()
        return self.exec_body(program, self.globals)

    def call(self, fn, args):
        if not callable(fn):
            raise JSError("{} is not a function".format(to_string(fn)))
        return fn(*args)

    def call_function(self, fn, args):
        self._tick()
        scope = Scope(fn.scope)
        for i, name in enumerate(fn.params):
            scope.vars[name] = args[i] if i < len(args) else UNDEFINED
        scope.vars["arguments"] = JSArray(args)
        try:
            self.exec_body(fn.body, scope)
        except ReturnSignal as r:
            return r.value
        return UNDEFINED

    def _tick(self):
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise JSTimeoutError("Script execution timed out.")

    # Statements.

    def exec_body(self, statements, scope):
        self._hoist(statements, scope)
        completion = UNDEFINED
        for statement in statements:
            value = self.execute(statement, scope)
            if statement[0] == "expr":
                completion = value
        return completion

    def _hoist(self, statements, scope):
        for statement in statements:
            kind = statement[0]
            if kind == "func_decl":
                _, name, params, body = statement
                scope.vars[name] = JSFunction(name, params, body, scope, self)
            elif kind == "var":
                for name, _ in statement[1]:
                    scope.vars.setdefault(name, UNDEFINED)
            elif kind == "block":
                self._hoist(statement[1], scope)
            elif kind == "if":
                self._hoist([s for s in statement[2:] if s is not None], scope)
            elif kind == "while":
                self._hoist([statement[2]], scope)
            elif kind == "do_while":
                self._hoist([statement[1]], scope)
            elif kind == "for_in":
                scope.vars.setdefault(statement[1], UNDEFINED)
                self._hoist([statement[3]], scope)
            elif kind == "for":
                init = statement[1]
                if init is not None and init[0] == "var":
                    self._hoist([init], scope)
                self._hoist([statement[4]], scope)

    def execute(self, node, scope):
        self._tick()
        return getattr(self, "_exec_" + node[0])(node, scope)

    def _exec_expr(self, node, scope):
        return self.evaluate(node[1], scope)

    def _exec_empty(self, node, scope):
        return UNDEFINED

    def _exec_func_decl(self, node, scope):
        return UNDEFINED

    def _exec_var(self, node, scope):
        for name, init in node[1]:
            if init is not None:
                self._assign_name(name, self.evaluate(init, scope), scope)
        return UNDEFINED

    def _exec_block(self, node, scope):
        for statement in node[1]:
            self.execute(statement, scope)
        return UNDEFINED

    def _exec_return(self, node, scope):
        raise ReturnSignal(UNDEFINED if node[1] is None else self.evaluate(node[1], scope))

    def _exec_break(self, node, scope):
        raise BreakSignal()

    def _exec_continue(self, node, scope):
        raise ContinueSignal()

    def _exec_if(self, node, scope):
        _, test, consequent, alternate = node
        if to_boolean(self.evaluate(test, scope)):
            self.execute(consequent, scope)
        elif alternate is not None:
            self.execute(alternate, scope)
        return UNDEFINED

    def _run_loop_body(self, body, scope):
        """Returns False if the loop should stop."""
        try:
            self.execute(body, scope)
        except BreakSignal:
            return False
        except ContinueSignal:
            pass
        return True

    def _exec_for(self, node, scope):
        _, init, test, update, body = node
        if init is not None:
            if init[0] == "var":
                self.execute(init, scope)
            else:
                self.evaluate(init, scope)
        while test is None or to_boolean(self.evaluate(test, scope)):
            self._tick()
            if not self._run_loop_body(body, scope):
                break
            if update is not None:
                self.evaluate(update, scope)
        return UNDEFINED

    def _exec_for_in(self, node, scope):
        _, name, obj_node, body = node
        obj = self.evaluate(obj_node, scope)
        if isinstance(obj, (JSArray, str)):
            keys = [str(i) for i in range(len(obj))]
        elif isinstance(obj, JSObject):
            keys = list(obj.keys())
        else:
            keys = []
        for key in keys:
            self._assign_name(name, key, scope)
            if not self._run_loop_body(body, scope):
                break
        return UNDEFINED

    def _exec_while(self, node, scope):
        _, test, body = node
        while to_boolean(self.evaluate(test, scope)):
            self._tick()
            if not self._run_loop_body(body, scope):
                break
        return UNDEFINED

    def _exec_do_while(self, node, scope):
        _, body, test = node
        while True:
            self._tick()
            if not self._run_loop_body(body, scope):
                break
            if not to_boolean(self.evaluate(test, scope)):
                break
        return UNDEFINED

    # Expressions.

    def evaluate(self, node, scope):
        return getattr(self, "_eval_" + node[0])(node, scope)

    def _assign_name(self, name, value, scope):
        owner = scope.lookup(name) or self.globals
        owner.vars[name] = value

    def _store(self, target, value, scope):
        if target[0] == "name":
            self._assign_name(target[1], value, scope)
        else:
            obj = self.evaluate(target[1], scope)
            set_member(obj, self.evaluate(target[2], scope), value)

    def _eval_num(self, node, scope):
        return node[1]

    _eval_str = _eval_num
    _eval_const = _eval_num

    def _eval_regex(self, node, scope):
        return JSRegExp(node[1], node[2])

    def _eval_name(self, node, scope):
        owner = scope.lookup(node[1])
        if owner is None:
            raise JSError("{} is not defined".format(node[1]))
        return owner.vars[node[1]]

    def _eval_array(self, node, scope):
        return JSArray(self.evaluate(e, scope) for e in node[1])

    def _eval_object(self, node, scope):
        return JSObject((key, self.evaluate(value, scope)) for key, value in node[1])

    def _eval_func(self, node, scope):
        _, name, params, body = node
        return JSFunction(name, params, body, scope, self)

    def _eval_member(self, node, scope):
        return get_member(self.evaluate(node[1], scope), self.evaluate(node[2], scope))

    def _eval_call(self, node, scope):
        _, callee, arg_nodes = node
        fn = self.evaluate(callee, scope)
        args = [self.evaluate(a, scope) for a in arg_nodes]
        return self.call(fn, args)

    def _eval_new(self, node, scope):
        fn = self.evaluate(node[1], scope)
        if not isinstance(fn, NativeFunction):
            raise JSError("Only built-in constructors are supported.")
        return fn(*[self.evaluate(a, scope) for a in node[2]])

    def _eval_seq(self, node, scope):
        value = UNDEFINED
        for expr in node[1]:
            value = self.evaluate(expr, scope)
        return value

    def _eval_cond(self, node, scope):
        _, test, consequent, alternate = node
        return self.evaluate(consequent if to_boolean(self.evaluate(test, scope)) else alternate, scope)

    def _eval_logical(self, node, scope):
        _, op, left, right = node
        value = self.evaluate(left, scope)
        if to_boolean(value) == (op == "||"):
            return value
        return self.evaluate(right, scope)

    def _eval_binary(self, node, scope):
        _, op, left, right = node
        return binary_op(op, self.evaluate(left, scope), self.evaluate(right, scope))

    def _eval_unary(self, node, scope):
        _, op, operand = node
        if op == "typeof":
            if operand[0] == "name" and scope.lookup(operand[1]) is None:
                return "undefined"
            return typeof(self.evaluate(operand, scope))
        if op == "delete":
            if operand[0] == "member":
                obj = self.evaluate(operand[1], scope)
                if isinstance(obj, JSObject):
                    obj.pop(to_string(self.evaluate(operand[2], scope)), None)
            return True

        value = self.evaluate(operand, scope)
        if op == "!":
            return not to_boolean(value)
        if op == "-":
            return -to_number(value)
        if op == "+":
            return to_number(value)
        if op == "~":
            return float(~to_int32(value))
        return UNDEFINED

    def _eval_update(self, node, scope):
        _, op, prefix, target = node
        if target[0] not in ("name", "member"):
            raise JSError("Invalid update target.")
        old = to_number(self.evaluate(target, scope))
        new = old + 1 if op == "++" else old - 1
        self._store(target, new, scope)
        return new if prefix else old

    def _eval_assign(self, node, scope):
        _, op, target, value_node = node
        if op == "=":
            value = self.evaluate(value_node, scope)
        else:
            value = binary_op(op[:-1], self.evaluate(target, scope), self.evaluate(value_node, scope))
        self._store(target, value, scope)
        return value

# ====================================================================
#                              EVALUATOR
# ====================================================================

class JSEvaluator:
    """
    Runs a snippet and, if it evaluates to a function, calls it with a single argument.
    Returns the result as a string, or an empty string if anything went wrong.

    """
    def __init__(self, timeout=10.0, logger=None):
        self.timeout = timeout
        self._logger = logger or logging.getLogger("mangadl")

    def evaluate(self, snippet, arg):
        interpreter = Interpreter(timeout=self.timeout)
        try:
            result = interpreter.run(snippet)
            if callable(result):
                result = interpreter.call(result, [arg])
        except (JSError, RecursionError) as e:
            self._logger.warning("Failed to evaluate JS: {}".format(e))
            return ""
        except (TypeError, ValueError, ZeroDivisionError, OverflowError, IndexError, KeyError) as e:
            # A native builtin choked on its arguments.
            self._logger.warning("Failed to evaluate JS: {}: {}".format(type(e).__name__, e))
            return ""

        if result is UNDEFINED or result is None:
            return ""
        return to_string(result)
