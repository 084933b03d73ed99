'''Phase portrait toolkit
Expression compiler: right-hand-side text to evaluable derivative functions

Expressions are tokenized, parsed into a small immutable syntax tree and
evaluated by walking that tree. Nothing is ever passed to eval/exec.'''

import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Signature shared by every compiled right-hand side
DerivativeFunction = Callable[[float, Sequence[float], Mapping[str, float]], float]

# Name of the independent variable available inside every expression
TIME_NAME = 't'


# ========== ERRORS ==========
class CompileErrorKind(Enum):
    EMPTY_EXPRESSION = 'empty-expression'
    UNBALANCED_PARENTHESES = 'unbalanced-parentheses'
    INVALID_CHARACTER = 'invalid-character'
    SYNTAX_ERROR = 'syntax-error'
    VARIABLE_COUNT_MISMATCH = 'variable-count-mismatch'
    INVALID_VARIABLE = 'invalid-variable'
    MISSING_PARAMETER = 'missing-parameter'


class CompileError(ValueError):
    """
    Raised when equation text cannot be turned into derivative functions.

    Attributes
    ----------
    kind : CompileErrorKind
        Category of the failure
    detail : str
        Human-readable description
    expression : str or None
        The offending expression or equation line, when known
    """
    def __init__(self, kind: CompileErrorKind, detail: str,
                 expression: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        self.expression = expression
        if expression is not None:
            message = f"{detail} in expression {expression!r}"
        else:
            message = detail
        super().__init__(message)


class MissingParameterError(KeyError):
    """Raised at evaluation time when a parameter has no value."""
    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self):
        return f"No value supplied for parameter '{self.name}'"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validate_expression. Falsy when the expression is invalid."""
    valid: bool
    error: Optional[str] = None
    kind: Optional[CompileErrorKind] = None

    def __bool__(self):
        return self.valid


# ========== MATH WHITELIST ==========
_INF = float('inf')
_NAN = float('nan')


def _ieee(fn, odd=False):
    """Wrap a math function so domain errors give NaN and overflow gives inf."""
    def wrapped(x):
        try:
            return fn(x)
        except ValueError:
            return _NAN
        except OverflowError:
            return math.copysign(_INF, x) if odd else _INF
    wrapped.__name__ = fn.__name__
    return wrapped


def _integral(fn):
    """Rounding functions pass non-finite input through unchanged."""
    def wrapped(x):
        if not math.isfinite(x):
            return x
        return float(fn(x))
    return wrapped


def _sign(x):
    if math.isnan(x):
        return _NAN
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    return 0.0


def _round_half_up(x):
    return math.floor(x + 0.5)


def _divide(a, b):
    try:
        return a / b
    except ZeroDivisionError:
        if a == 0 or math.isnan(a):
            return _NAN
        return math.copysign(_INF, a) * math.copysign(1.0, b)


def _power(base, exponent):
    try:
        return math.pow(base, exponent)
    except OverflowError:
        if base < 0 and float(exponent).is_integer() and int(exponent) % 2 == 1:
            return -_INF
        return _INF
    except ValueError:
        if base == 0 and exponent < 0:
            return _INF
        return _NAN


MATH_FUNCTIONS: Dict[str, Callable[[float], float]] = {
    'sin': _ieee(math.sin),
    'cos': _ieee(math.cos),
    'tan': _ieee(math.tan),
    'asin': _ieee(math.asin),
    'acos': _ieee(math.acos),
    'atan': _ieee(math.atan),
    'sinh': _ieee(math.sinh, odd=True),
    'cosh': _ieee(math.cosh),
    'tanh': _ieee(math.tanh),
    'exp': _ieee(math.exp),
    'log': _ieee(math.log),
    'ln': _ieee(math.log),
    'log10': _ieee(math.log10),
    'sqrt': _ieee(math.sqrt),
    'abs': abs,
    'sign': _sign,
    'floor': _integral(math.floor),
    'ceil': _integral(math.ceil),
    'round': _integral(_round_half_up),
}

# functions taking more than one argument
MATH_FUNCTIONS_N: Dict[str, Tuple[int, Callable[..., float]]] = {
    'pow': (2, _power),
}

MATH_CONSTANTS: Dict[str, float] = {
    'pi': math.pi,
    'e': math.e,
    'PI': math.pi,
    'E': math.e,
}

RESERVED_NAMES = frozenset((TIME_NAME,))


def _is_function_name(name: str) -> bool:
    return name in MATH_FUNCTIONS or name in MATH_FUNCTIONS_N


# ========== SYNTAX TREE ==========
@dataclass(frozen=True)
class Node:
    """Base class for all syntax tree nodes."""

    def evaluate(self, t: float, state: Sequence[float],
                 param_values: Sequence[float]) -> float:
        raise NotImplementedError


@dataclass(frozen=True)
class Number(Node):
    """Numeric literal."""
    value: float

    def evaluate(self, t, state, param_values):
        return self.value

    def __str__(self):
        return repr(self.value)


@dataclass(frozen=True)
class Constant(Node):
    """Named math constant such as pi."""
    name: str
    value: float

    def evaluate(self, t, state, param_values):
        return self.value

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class Time(Node):
    """The independent variable t."""

    def evaluate(self, t, state, param_values):
        return t

    def __str__(self):
        return TIME_NAME


@dataclass(frozen=True)
class StateSlot(Node):
    """A state variable bound to its position in the state vector."""
    index: int
    name: str

    def evaluate(self, t, state, param_values):
        return state[self.index]

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class ParameterSlot(Node):
    """A parameter bound to its position in the expression's parameter table."""
    index: int
    name: str

    def evaluate(self, t, state, param_values):
        return param_values[self.index]

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class UnaryOp(Node):
    """Unary plus or minus."""
    op: str
    operand: Node

    def evaluate(self, t, state, param_values):
        value = self.operand.evaluate(t, state, param_values)
        return -value if self.op == '-' else value

    def __str__(self):
        return f"{self.op}({self.operand})"


@dataclass(frozen=True)
class BinaryOp(Node):
    """Arithmetic operation: left op right."""
    op: str
    left: Node
    right: Node

    def evaluate(self, t, state, param_values):
        a = self.left.evaluate(t, state, param_values)
        b = self.right.evaluate(t, state, param_values)
        if self.op == '+':
            return a + b
        if self.op == '-':
            return a - b
        if self.op == '*':
            return a * b
        return _divide(a, b)

    def __str__(self):
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True)
class Power(Node):
    """Explicit binary power."""
    base: Node
    exponent: Node

    def evaluate(self, t, state, param_values):
        return _power(self.base.evaluate(t, state, param_values),
                      self.exponent.evaluate(t, state, param_values))

    def __str__(self):
        return f"pow({self.base}, {self.exponent})"


@dataclass(frozen=True)
class FunctionCall(Node):
    """Call of a whitelisted math function."""
    name: str
    args: Tuple[Node, ...]
    func: Callable[..., float] = field(compare=False, repr=False)

    def evaluate(self, t, state, param_values):
        return self.func(*(arg.evaluate(t, state, param_values) for arg in self.args))

    def __str__(self):
        args = ", ".join(str(a) for a in self.args)
        return f"{self.name}({args})"


# ========== TOKENIZER ==========
class Token(NamedTuple):
    kind: str
    text: str
    pos: int


_TOKEN_RE = re.compile(r"""
    (?P<NUMBER>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<NAME>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<POW>\*\*|\^)
  | (?P<OP>[-+*/(),])
  | (?P<SPACE>\s+)
""", re.VERBOSE)

# characters allowed anywhere in an expression
_VALID_CHARS_RE = re.compile(r"^[A-Za-z0-9_+\-*/().,\s^]+$")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def tokenize(expression: str) -> List[Token]:
    """
    Split an expression into tokens.

    Raises
    ------
    CompileError
        INVALID_CHARACTER if a character cannot start any token
    """
    tokens = []
    pos = 0
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if match is None:
            raise CompileError(
                CompileErrorKind.INVALID_CHARACTER,
                f"Invalid character {expression[pos]!r} at position {pos}",
                expression
            )
        kind = match.lastgroup
        if kind != 'SPACE':
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    tokens.append(Token('END', '', len(expression)))
    return tokens


# ========== PARSER ==========
class _Parser:
    """
    Recursive-descent parser producing a bound syntax tree.

    Grammar::

        expression := term (('+' | '-') term)*
        term       := unary (('*' | '/') unary)*
        unary      := ('+' | '-') unary | power
        power      := primary (('^' | '**') unary)?
        primary    := NUMBER | NAME | NAME '(' arguments ')' | '(' expression ')'

    Power binds tighter than unary minus on its left and is right
    associative, so ``-x^2`` is ``-(x^2)`` and ``a^b^c`` is ``a^(b^c)``.
    """

    def __init__(self, expression: str, variables: Sequence[str],
                 declared_parameters: Sequence[str] = ()):
        self.expression = expression
        self.tokens = tokenize(expression)
        self.pos = 0
        self.slots = {name: i for i, name in enumerate(variables)}
        self.declared = frozenset(declared_parameters)
        # parameter-slot table in order of first appearance
        self.parameters: Dict[str, int] = {}

    # ---------- token helpers ----------
    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _accept(self, kind: str, text: Optional[str] = None) -> Optional[Token]:
        token = self._peek()
        if token.kind == kind and (text is None or token.text == text):
            return self._advance()
        return None

    def _expect(self, kind: str, text: str) -> Token:
        token = self._accept(kind, text)
        if token is None:
            found = self._peek()
            self._error(f"Expected {text!r} at position {found.pos}, "
                        f"found {self._describe(found)}")
        return token

    @staticmethod
    def _describe(token: Token) -> str:
        if token.kind == 'END':
            return "end of expression"
        return repr(token.text)

    def _error(self, detail: str):
        raise CompileError(CompileErrorKind.SYNTAX_ERROR, detail, self.expression)

    # ---------- grammar ----------
    def parse(self) -> Node:
        if self._peek().kind == 'END':
            raise CompileError(CompileErrorKind.EMPTY_EXPRESSION,
                               "Expression is empty", self.expression)
        tree = self._expression()
        token = self._peek()
        if token.kind != 'END':
            self._error(f"Unexpected {self._describe(token)} at position {token.pos}")
        return tree

    def _expression(self) -> Node:
        node = self._term()
        while True:
            token = self._accept('OP', '+') or self._accept('OP', '-')
            if token is None:
                return node
            node = BinaryOp(token.text, node, self._term())

    def _term(self) -> Node:
        node = self._unary()
        while True:
            token = self._accept('OP', '*') or self._accept('OP', '/')
            if token is None:
                return node
            node = BinaryOp(token.text, node, self._unary())

    def _unary(self) -> Node:
        token = self._accept('OP', '-') or self._accept('OP', '+')
        if token is not None:
            return UnaryOp(token.text, self._unary())
        return self._power()

    def _power(self) -> Node:
        base = self._primary()
        if self._accept('POW'):
            # exponent may carry its own sign: x^-2
            return Power(base, self._unary())
        return base

    def _primary(self) -> Node:
        token = self._advance()
        if token.kind == 'NUMBER':
            return Number(float(token.text))
        if token.kind == 'NAME':
            return self._name(token)
        if token.kind == 'OP' and token.text == '(':
            node = self._expression()
            self._expect('OP', ')')
            return node
        self._error(f"Unexpected {self._describe(token)} at position {token.pos}")

    def _name(self, token: Token) -> Node:
        name = token.text
        is_call = self._peek().kind == 'OP' and self._peek().text == '('

        if is_call:
            if not _is_function_name(name):
                self._error(f"Unknown function '{name}' at position {token.pos}")
            return self._call(name)
        if name in self.slots:
            return StateSlot(self.slots[name], name)
        if name in RESERVED_NAMES:
            return Time()
        if _is_function_name(name):
            self._error(f"Function '{name}' used without arguments "
                        f"at position {token.pos}")
        if name in MATH_CONSTANTS and name not in self.declared:
            return Constant(name, MATH_CONSTANTS[name])
        # anything left over is an implicit parameter
        index = self.parameters.setdefault(name, len(self.parameters))
        return ParameterSlot(index, name)

    def _call(self, name: str) -> Node:
        self._expect('OP', '(')
        args = [self._expression()]
        while self._accept('OP', ','):
            args.append(self._expression())
        self._expect('OP', ')')

        if name in MATH_FUNCTIONS:
            arity, func = 1, MATH_FUNCTIONS[name]
        else:
            arity, func = MATH_FUNCTIONS_N[name]
        if len(args) != arity:
            self._error(f"Function '{name}' takes {arity} argument(s), "
                        f"got {len(args)}")
        if name == 'pow':
            return Power(args[0], args[1])
        return FunctionCall(name, tuple(args), func)


# ========== COMPILED EXPRESSION ==========
class CompiledExpression:
    """
    Immutable, callable compiled right-hand side.

    Calling the object with ``(t, state, params)`` walks the syntax tree.
    Parameters are looked up once per call into a positional table, so a
    missing parameter is reported even when it sits in an unused branch.

    Attributes
    ----------
    expression : str
        Original expression text
    variables : tuple of str
        Variable names bound to state slots, in state-vector order
    parameters : tuple of str
        Implicit parameters discovered in the expression, in order of
        first appearance
    tree : Node
        Root of the syntax tree
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, expression: str, variables: Sequence[str], tree: Node,
                 parameters: Sequence[str]):
        self._expression = expression
        self._variables = tuple(variables)
        self._tree = tree
        self._parameters = tuple(parameters)

    # ========== PROPERTY ACCESS ==========
    @property
    def expression(self) -> str:
        return self._expression

    @property
    def variables(self) -> Tuple[str, ...]:
        return self._variables

    @property
    def parameters(self) -> Tuple[str, ...]:
        return self._parameters

    @property
    def tree(self) -> Node:
        return self._tree

    # ========== EVALUATION ==========
    def __call__(self, t: float, state: Sequence[float],
                 params: Optional[Mapping[str, float]] = None) -> float:
        if params is None:
            params = {}
        try:
            values = [float(params[name]) for name in self._parameters]
        except KeyError as exc:
            raise MissingParameterError(exc.args[0]) from None
        return float(self._tree.evaluate(t, state, values))

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return (f"CompiledExpression({self._expression!r}, "
                f"variables={list(self._variables)}, "
                f"parameters={list(self._parameters)})")

    def __str__(self):
        return str(self._tree)


# ========== PUBLIC API ==========
def _check_text(expression: str):
    """Cheap textual checks shared by validation and compilation."""
    if expression is None or expression.strip() == '':
        raise CompileError(CompileErrorKind.EMPTY_EXPRESSION,
                           "Expression is empty", expression)

    depth = 0
    for char in expression:
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
        if depth < 0:
            raise CompileError(CompileErrorKind.UNBALANCED_PARENTHESES,
                               "Unbalanced parentheses", expression)
    if depth != 0:
        raise CompileError(CompileErrorKind.UNBALANCED_PARENTHESES,
                           "Unbalanced parentheses", expression)

    if not _VALID_CHARS_RE.match(expression):
        bad = next(c for c in expression if not _VALID_CHARS_RE.match(c))
        raise CompileError(CompileErrorKind.INVALID_CHARACTER,
                           f"Expression contains invalid character {bad!r}",
                           expression)


def check_variables(variables: Sequence[str]) -> Tuple[str, ...]:
    """
    Validate a variable set and return it as a tuple.

    Variables must be distinct identifiers that do not collide with math
    function names or the reserved time variable.
    """
    names = tuple(variables)
    for name in names:
        if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
            raise CompileError(CompileErrorKind.INVALID_VARIABLE,
                               f"Invalid variable name {name!r}")
        if _is_function_name(name):
            raise CompileError(CompileErrorKind.INVALID_VARIABLE,
                               f"Variable name '{name}' collides with a math function")
        if name in RESERVED_NAMES:
            raise CompileError(CompileErrorKind.INVALID_VARIABLE,
                               f"Variable name '{name}' is reserved")
    if len(names) != len(set(names)):
        raise CompileError(CompileErrorKind.INVALID_VARIABLE,
                           f"Duplicate variable names: {list(names)}")
    return names


def parse_expression(expression: str, variables: Sequence[str] = (),
                     parameters: Sequence[str] = ()) -> Tuple[Node, Tuple[str, ...]]:
    """
    Parse an expression into a bound syntax tree without evaluating it.

    Returns
    -------
    tree : Node
        Root of the syntax tree
    parameters : tuple of str
        Implicit parameters in order of first appearance
    """
    _check_text(expression)
    parser = _Parser(expression.strip(), variables, parameters)
    tree = parser.parse()
    return tree, tuple(parser.parameters)


def compile_expression(expression: str, variables: Sequence[str],
                       parameters: Sequence[str] = ()) -> CompiledExpression:
    """
    Compile a right-hand-side expression into a derivative function.

    Parameters
    ----------
    expression : str
        Infix expression, e.g. ``"sigma*(y - x)"``
    variables : sequence of str
        Ordered variable set; position defines the state-vector slot
    parameters : sequence of str, optional
        Names known to be parameters. A declared parameter takes precedence
        over a math constant of the same name (e.g. ``e``).

    Returns
    -------
    CompiledExpression
        Pure callable ``f(t, state, params) -> float``

    Raises
    ------
    CompileError
        If the expression is empty, has unbalanced parentheses, contains an
        invalid character or is syntactically malformed

    Examples
    --------
    >>> f = compile_expression("sigma*(y - x)", ["x", "y", "z"])
    >>> f(0.0, [1.0, 2.0, 3.0], {"sigma": 10})
    10.0
    """
    variables = check_variables(variables)
    tree, found = parse_expression(expression, variables, parameters)
    if found:
        logger.debug("Expression %r uses parameters %s", expression, list(found))
    return CompiledExpression(expression.strip(), variables, tree, found)


def compile_system(expressions: Sequence[str], variables: Sequence[str],
                   parameters: Sequence[str] = ()) -> List[CompiledExpression]:
    """
    Compile one expression per variable.

    Raises
    ------
    CompileError
        VARIABLE_COUNT_MISMATCH if the counts differ, or any error raised by
        compile_expression
    """
    expressions = list(expressions)
    variables = check_variables(variables)
    if len(expressions) != len(variables):
        raise CompileError(
            CompileErrorKind.VARIABLE_COUNT_MISMATCH,
            f"Got {len(expressions)} expressions for {len(variables)} variables"
        )
    return [compile_expression(expr, variables, parameters) for expr in expressions]


def validate_expression(expression: str, variables: Sequence[str] = (),
                        parameters: Sequence[str] = ()) -> ValidationResult:
    """
    Check an expression without evaluating it.

    Returns
    -------
    ValidationResult
        ``valid`` is False with an ``error`` message and ``kind`` when the
        expression is empty, unbalanced, contains invalid characters or
        fails the trial parse.
    """
    try:
        parse_expression(expression, variables, parameters)
    except CompileError as exc:
        return ValidationResult(False, str(exc), exc.kind)
    return ValidationResult(True)


def extract_parameters(expression: str, variables: Sequence[str] = ()) -> List[str]:
    """
    List the implicit parameters of an expression in order of appearance.

    Examples
    --------
    >>> extract_parameters("alpha*x - beta*x*y", ["x", "y"])
    ['alpha', 'beta']
    """
    _, found = parse_expression(expression, variables)
    return list(found)
