'''Phase portrait toolkit
EquationDefinition class definition'''

import functools
import logging
import re
import warnings
import numpy as np
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union
from .expression import (
    CompileError, CompileErrorKind, CompiledExpression, compile_system, check_variables,
)
from .nullclines import NullclineResult, system_nullclines
from .result import SimulationResult
from .solvers import SolverConfig, integrate
from .utils import validation_error

logger = logging.getLogger(__name__)

# left-hand side of a batch equation: dX/dt
_DERIVATIVE_RE = re.compile(r"d([a-zA-Z_][a-zA-Z0-9_]*)\s*/\s*dt")


# ========== BATCH TEXT ==========
def _split_lines(equations: Union[str, Sequence[str]]) -> List[str]:
    if isinstance(equations, str):
        equations = equations.splitlines()
    return [line.strip() for line in equations if line and line.strip()]


def extract_variables(equations: Union[str, Sequence[str]]) -> List[str]:
    """
    Variable names from ``dX/dt`` left-hand sides, in encounter order.

    Lines without a recognizable derivative are skipped.

    Examples
    --------
    >>> extract_variables(["dx/dt = y", "dy/dt = -x"])
    ['x', 'y']
    """
    variables = []
    for line in _split_lines(equations):
        match = _DERIVATIVE_RE.search(line.split('=')[0])
        if match:
            variables.append(match.group(1))
    return variables


def extract_right_hand_side(equation: str) -> str:
    """
    Text to the right of the single '=' in an equation.

    Raises
    ------
    CompileError
        SYNTAX_ERROR if the line does not contain exactly one '='
    """
    parts = equation.split('=')
    if len(parts) != 2:
        raise CompileError(CompileErrorKind.SYNTAX_ERROR,
                           "Equation must contain exactly one '='", equation)
    return parts[1].strip()


def parse_system(equations: Union[str, Sequence[str]]) -> Tuple[List[str], List[str]]:
    """
    Split batch equations into variables and right-hand sides.

    Parameters
    ----------
    equations : str or sequence of str
        Lines of the form ``dX/dt = expression``. A single string is split
        on newlines; blank lines are ignored.

    Returns
    -------
    variables : list of str
        Variable set in encounter order
    expressions : list of str
        Right-hand side for each variable

    Raises
    ------
    CompileError
        EMPTY_EXPRESSION if there are no equations or no variables,
        VARIABLE_COUNT_MISMATCH if some line has no ``dX/dt`` left side,
        SYNTAX_ERROR for a line without exactly one '='
    """
    lines = _split_lines(equations)
    if not lines:
        raise CompileError(CompileErrorKind.EMPTY_EXPRESSION, "No equations given")

    variables = extract_variables(lines)
    if not variables:
        raise CompileError(CompileErrorKind.EMPTY_EXPRESSION,
                           "No variables found in the equations")
    if len(variables) != len(lines):
        raise CompileError(
            CompileErrorKind.VARIABLE_COUNT_MISMATCH,
            f"Found {len(variables)} variables for {len(lines)} equations; "
            f"each left side must have the form dX/dt"
        )
    expressions = [extract_right_hand_side(line) for line in lines]
    return variables, expressions


# ========== EQUATION DEFINITION ==========
class EquationDefinition:
    """
    Immutable, compiled system of ordinary differential equations.

    A definition is compiled once and then only read: integrating it or
    extracting its nullclines never changes it. Changing parameter values
    between runs produces a new definition (see ``with_parameters``) or is
    done per call through the ``params`` argument.

    Parameters
    ----------
    variables : sequence of str
        Ordered variable set; position defines the state-vector slot
    expressions : sequence of str
        Right-hand side for each variable
    parameters : mapping, optional
        Parameter values. Names declared here take precedence over math
        constants of the same name.
    id : str, optional
        Short identifier (default 'custom')
    name : str, optional
        Display name
    description : str, optional
        Free-text description

    Raises
    ------
    CompileError
        If an expression does not compile, the counts differ, or (with
        config.STRICT_VALIDATION) a parameter used by an expression has no
        value

    Examples
    --------
    >>> lorenz = EquationDefinition(
    ...     ['x', 'y', 'z'],
    ...     ['sigma*(y - x)', 'x*(rho - z) - y', 'x*y - beta*z'],
    ...     {'sigma': 10, 'rho': 28, 'beta': 8/3})
    >>> lorenz.evaluate(0.0, [1, 2, 3])
    array([10.        , 23.        , -6.        ])
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, variables: Sequence[str], expressions: Sequence[str],
                 parameters: Optional[Mapping[str, float]] = None,
                 id: Optional[str] = None, name: Optional[str] = None,
                 description: Optional[str] = None):
        self._variables = check_variables(variables)
        self._expressions = tuple(e.strip() for e in expressions)
        params = {key: float(value) for key, value in (parameters or {}).items()}
        self._parameters = MappingProxyType(params)
        self._functions = tuple(
            compile_system(self._expressions, self._variables, tuple(params))
        )
        self._id = id or 'custom'
        self._name = name or 'Custom system'
        self._description = description

        # parameters used by any expression, in order of first appearance
        used = []
        for f in self._functions:
            used.extend(p for p in f.parameters if p not in used)
        self._parameter_names = tuple(used)

        missing = [p for p in self._parameter_names if p not in params]
        if missing:
            validation_error(
                f"No value given for parameter(s) {missing} used in '{self._id}'",
                functools.partial(CompileError, CompileErrorKind.MISSING_PARAMETER)
            )
        logger.debug("Compiled system '%s': variables %s, parameters %s",
                     self._id, list(self._variables), list(self._parameter_names))

    @classmethod
    def from_expressions(cls, expressions: Sequence[str], variables: Sequence[str],
                         parameters: Optional[Mapping[str, float]] = None,
                         **metadata) -> "EquationDefinition":
        """Build from one right-hand side per variable."""
        return cls(variables, expressions, parameters, **metadata)

    @classmethod
    def from_equations(cls, equations: Union[str, Sequence[str]],
                       parameters: Optional[Mapping[str, float]] = None,
                       **metadata) -> "EquationDefinition":
        """
        Build from batch text such as ``"dx/dt = y\\ndy/dt = -x"``.

        The variable set is taken from the left-hand sides in order.
        """
        variables, expressions = parse_system(equations)
        return cls(variables, expressions, parameters, **metadata)

    def with_parameters(self, **updates) -> "EquationDefinition":
        """
        Copy of this definition with some parameter values replaced.

        Names that no expression uses and that were not declared before are
        accepted with a warning.
        """
        known = set(self._parameters) | set(self._parameter_names)
        unknown = sorted(set(updates) - known)
        if unknown:
            warnings.warn(f"Parameter(s) {unknown} are not used by '{self._id}'",
                          UserWarning, stacklevel=2)
        params = dict(self._parameters)
        params.update(updates)
        return EquationDefinition(self._variables, self._expressions, params,
                                  id=self._id, name=self._name,
                                  description=self._description)

    # ========== PROPERTY ACCESS ==========
    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> Optional[str]:
        return self._description

    @property
    def variables(self) -> Tuple[str, ...]:
        return self._variables

    @property
    def expressions(self) -> Tuple[str, ...]:
        return self._expressions

    @property
    def parameters(self) -> Mapping[str, float]:
        """Read-only parameter map."""
        return self._parameters

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        """Parameters actually used by the expressions."""
        return self._parameter_names

    @property
    def functions(self) -> Tuple[CompiledExpression, ...]:
        """Compiled derivative functions, one per variable."""
        return self._functions

    @property
    def dimension(self) -> int:
        return len(self._variables)

    # ========== EVALUATION ==========
    def _merged(self, params: Optional[Mapping[str, float]]) -> Dict[str, float]:
        merged = dict(self._parameters)
        if params:
            merged.update(params)
        return merged

    def evaluate(self, t: float, state: Sequence[float],
                 params: Optional[Mapping[str, float]] = None) -> np.ndarray:
        """
        Derivative vector at (t, state).

        Parameters
        ----------
        t : float
            Time
        state : sequence of float
            One value per variable
        params : mapping, optional
            Overrides for the stored parameter values
        """
        if len(state) != self.dimension:
            raise ValueError(
                f"State has {len(state)} components, expected {self.dimension}"
            )
        merged = self._merged(params)
        return np.array([f(t, state, merged) for f in self._functions], dtype=float)

    def integrate(self, initial_state: Sequence[float], config: SolverConfig,
                  t0: float = 0.0,
                  params: Optional[Mapping[str, float]] = None) -> SimulationResult:
        """
        Integrate from (t0, initial_state) to config.t_end.

        Parameters
        ----------
        initial_state : sequence of float
            One value per variable
        config : SolverConfig
            Method and step settings
        t0 : float, optional
            Start time (default 0)
        params : mapping, optional
            Overrides for the stored parameter values for this run only

        Returns
        -------
        SimulationResult
            Columns labelled with this system's variable names
        """
        return integrate(initial_state, t0, self._functions, self._merged(params),
                         config, variables=self._variables)

    def nullclines(self, x_range: Tuple[float, float], y_range: Tuple[float, float],
                   resolution: Optional[int] = None,
                   params: Optional[Mapping[str, float]] = None) -> NullclineResult:
        """
        Nullclines of a two-variable system; empty curves otherwise.

        See ``compute_nullclines`` for the extraction details.
        """
        return system_nullclines(self._functions, x_range, y_range, resolution,
                                 self._merged(params))

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        return self.dimension

    def __repr__(self):
        return (f"EquationDefinition(id={self._id!r}, variables={list(self._variables)}, "
                f"parameters={dict(self._parameters)})")

    def __str__(self):
        lines = [f"{self._name}:"]
        for var, expr in zip(self._variables, self._expressions):
            lines.append(f"  d{var}/dt = {expr}")
        return "\n".join(lines)
