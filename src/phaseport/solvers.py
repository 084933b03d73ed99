'''Phase portrait toolkit
Integration engine: Euler, RK4, RKF45 and Adams-Bashforth solvers

All four methods share one driving loop. Each method is a small stepper
object that turns the current accepted point into the next accepted point;
the loop owns the trajectory, the step cap, divergence detection and the
conversion of exceptions into failed results.'''

import logging
import math
import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union
from .config import config
from .expression import DerivativeFunction
from .result import SimulationResult
from .utils import Timer

logger = logging.getLogger(__name__)


# define an enumerated list of integration methods
class Method(Enum):
    EULER = 'euler'
    RK4 = 'rk4'
    RKF45 = 'rkf45'
    ADAMS_BASHFORTH = 'adams-bashforth'


class UnsupportedMethodError(ValueError):
    """Raised when a configuration names an unknown integration method."""


def parse_method(method) -> Method:
    """Convert string or enum to Method enum."""
    if isinstance(method, Method):
        return method
    elif isinstance(method, str):
        method_map = {
            'euler': Method.EULER,
            'rk4': Method.RK4,
            'runge-kutta': Method.RK4,
            'rkf45': Method.RKF45,
            'adaptive': Method.RKF45,
            'adams-bashforth': Method.ADAMS_BASHFORTH,
            'adams_bashforth': Method.ADAMS_BASHFORTH,
            'ab': Method.ADAMS_BASHFORTH,
        }
        key = method.strip().lower()
        if key in method_map:
            return method_map[key]
        raise UnsupportedMethodError(
            f"Unknown integration method '{method}'. "
            f"Use: {[m.value for m in Method]}"
        )
    else:
        raise UnsupportedMethodError(
            f"method must be Method or str, got {type(method)}"
        )


# ========== CONFIGURATION ==========
@dataclass(frozen=True)
class SolverConfig:
    """
    Immutable settings for one integration run.

    Fields left as None are filled from the global ``config`` when the
    SolverConfig is created.

    Attributes
    ----------
    method : Method or str
        One of 'euler', 'rk4', 'rkf45', 'adams-bashforth'
    dt : float
        Fixed step, or initial step for RKF45. Must be positive.
    t_end : float
        End time of the run
    max_steps : int, optional
        Cap on accepted steps (default: config.DEFAULT_MAX_STEPS)
    tolerance : float, optional
        RKF45 local error tolerance (default: config.DEFAULT_TOLERANCE)
    min_step : float, optional
        RKF45 smallest step (default: config.DEFAULT_MIN_STEP)
    max_step : float, optional
        RKF45 largest step (default: config.DEFAULT_MAX_STEP)
    safety_factor : float, optional
        RKF45 step controller safety factor
        (default: config.DEFAULT_SAFETY_FACTOR)
    order : int, optional
        Adams-Bashforth order, 2, 3 or 4 (default: config.DEFAULT_AB_ORDER)
    """
    method: Union[Method, str]
    dt: float
    t_end: float
    max_steps: Optional[int] = None
    tolerance: Optional[float] = None
    min_step: Optional[float] = None
    max_step: Optional[float] = None
    safety_factor: Optional[float] = None
    order: Optional[int] = None

    def __post_init__(self):
        # frozen dataclass: defaults are filled through object.__setattr__
        object.__setattr__(self, 'method', parse_method(self.method))
        defaults = {
            'max_steps': config.DEFAULT_MAX_STEPS,
            'tolerance': config.DEFAULT_TOLERANCE,
            'min_step': config.DEFAULT_MIN_STEP,
            'max_step': config.DEFAULT_MAX_STEP,
            'safety_factor': config.DEFAULT_SAFETY_FACTOR,
            'order': config.DEFAULT_AB_ORDER,
        }
        for name, value in defaults.items():
            if getattr(self, name) is None:
                object.__setattr__(self, name, value)

        # Validate parameters
        if not (self.dt > 0 and math.isfinite(self.dt)):
            raise ValueError(f"Step size dt must be positive and finite, got {self.dt}")
        if not math.isfinite(self.t_end):
            raise ValueError(f"End time must be finite, got {self.t_end}")
        if int(self.max_steps) != self.max_steps or self.max_steps <= 0:
            raise ValueError(f"max_steps must be a positive integer, got {self.max_steps}")
        if self.tolerance <= 0:
            raise ValueError(f"Tolerance must be positive, got {self.tolerance}")
        if self.min_step <= 0:
            raise ValueError(f"min_step must be positive, got {self.min_step}")
        if self.max_step < self.min_step:
            raise ValueError(
                f"max_step ({self.max_step}) must be >= min_step ({self.min_step})"
            )
        if not 0 < self.safety_factor <= 1:
            raise ValueError(
                f"Safety factor must be in (0, 1], got {self.safety_factor}"
            )
        if self.order not in AB_COEFFICIENTS:
            raise ValueError(
                f"Adams-Bashforth order must be one of "
                f"{sorted(AB_COEFFICIENTS)}, got {self.order}"
            )
        object.__setattr__(self, 'max_steps', int(self.max_steps))

    def replace(self, **changes) -> "SolverConfig":
        """Return a copy with some fields changed."""
        fields = {name: getattr(self, name) for name in self.__dataclass_fields__}
        fields.update(changes)
        return SolverConfig(**fields)


# ========== SHARED HELPERS ==========
def evaluate_derivatives(derivatives: Sequence[DerivativeFunction], t: float,
                         y: np.ndarray, params: Mapping[str, float]) -> np.ndarray:
    """Evaluate every derivative function at (t, y) into one vector."""
    return np.array([f(t, y, params) for f in derivatives], dtype=float)


def rk4_step(derivatives: Sequence[DerivativeFunction], t: float, y: np.ndarray,
             h: float, params: Mapping[str, float]) -> np.ndarray:
    """
    One classical fourth-order Runge-Kutta step.

    Stages at 0, h/2, h/2, h combined as (k1 + 2*k2 + 2*k3 + k4)/6.
    """
    k1 = evaluate_derivatives(derivatives, t, y, params)
    k2 = evaluate_derivatives(derivatives, t + 0.5 * h, y + 0.5 * h * k1, params)
    k3 = evaluate_derivatives(derivatives, t + 0.5 * h, y + 0.5 * h * k2, params)
    k4 = evaluate_derivatives(derivatives, t + h, y + h * k3, params)
    return y + (h / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


def clip_step(t: float, h: float, t_end: float) -> Tuple[float, float]:
    """
    Shorten a step so it does not pass t_end.

    Returns the step to take and the time it lands on. A step that would land
    within round-off of t_end is stretched to land on it exactly.
    """
    snap = 1e-12 * max(1.0, abs(t_end))
    if t + h >= t_end - snap:
        return t_end - t, t_end
    return h, t + h


def is_finite_state(y: np.ndarray) -> bool:
    if not np.all(np.isfinite(y)):
        return False
    threshold = config.DIVERGENCE_THRESHOLD
    return not (math.isfinite(threshold) and np.max(np.abs(y)) > threshold)


class HistoryWindow:
    """
    Fixed-capacity ring buffer of derivative vectors.

    Index 0 is the most recent entry. Pushing into a full window evicts the
    oldest entry.

    Examples
    --------
    >>> w = HistoryWindow(capacity=2, size=1)
    >>> w.push([1.0]); w.push([2.0]); w.push([3.0])
    >>> [float(v[0]) for v in w]
    [3.0, 2.0]
    """
    def __init__(self, capacity: int, size: int):
        if capacity <= 0:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        self._buffer = np.zeros((capacity, size), dtype=float)
        self._capacity = capacity
        self._head = -1     # slot of the most recent entry
        self._count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return self._count == self._capacity

    def push(self, values):
        self._head = (self._head + 1) % self._capacity
        self._buffer[self._head] = values
        self._count = min(self._count + 1, self._capacity)

    def __len__(self):
        return self._count

    def __getitem__(self, k: int) -> np.ndarray:
        if not 0 <= k < self._count:
            raise IndexError(f"History index {k} out of range (size {self._count})")
        return self._buffer[(self._head - k) % self._capacity]

    def __iter__(self):
        for k in range(self._count):
            yield self[k]

    def __repr__(self):
        return f"HistoryWindow(capacity={self._capacity}, size={self._count})"


# ========== STEPPERS ==========
class Stepper:
    """
    Base class for stepping strategies.

    Subclasses implement ``advance`` which returns the next accepted
    (time, state) pair. Steppers never modify the state they are given.
    """
    method: Method = None

    def __init__(self, derivatives: Sequence[DerivativeFunction],
                 params: Mapping[str, float], cfg: SolverConfig):
        self.derivatives = list(derivatives)
        self.params = params
        self.cfg = cfg

    def start(self, t0: float, y0: np.ndarray):
        """Prepare for a run starting at (t0, y0)."""

    def advance(self, t: float, y: np.ndarray) -> Tuple[float, np.ndarray]:
        raise NotImplementedError

    def diagnostics(self) -> Dict[str, object]:
        return {}

    def summary(self, steps: int) -> str:
        return f"{SOLVER_INFO[self.method].name} integration completed in {steps} steps"


class EulerStepper(Stepper):
    """Explicit Euler: y_{n+1} = y_n + h*f(t_n, y_n)."""
    method = Method.EULER

    def advance(self, t, y):
        h, t_new = clip_step(t, self.cfg.dt, self.cfg.t_end)
        dydt = evaluate_derivatives(self.derivatives, t, y, self.params)
        return t_new, y + h * dydt


class RK4Stepper(Stepper):
    """Classical fourth-order Runge-Kutta with a fixed step."""
    method = Method.RK4

    def advance(self, t, y):
        h, t_new = clip_step(t, self.cfg.dt, self.cfg.t_end)
        return t_new, rk4_step(self.derivatives, t, y, h, self.params)


# Butcher tableau for Runge-Kutta-Fehlberg 4(5)
RKF45_A = np.array([0.0, 1 / 4, 3 / 8, 12 / 13, 1.0, 1 / 2])
RKF45_B = (
    (),
    (1 / 4,),
    (3 / 32, 9 / 32),
    (1932 / 2197, -7200 / 2197, 7296 / 2197),
    (439 / 216, -8.0, 3680 / 513, -845 / 4104),
    (-8 / 27, 2.0, -3544 / 2565, 1859 / 4104, -11 / 40),
)
RKF45_C4 = np.array([25 / 216, 0.0, 1408 / 2565, 2197 / 4104, -1 / 5, 0.0])
RKF45_C5 = np.array([16 / 135, 0.0, 6656 / 12825, 28561 / 56430, -9 / 50, 2 / 55])

# floor on the per-component error scale
_ERROR_SCALE_FLOOR = 1e-10


class RKF45Stepper(Stepper):
    """
    Adaptive Runge-Kutta-Fehlberg 4(5).

    Each attempt computes order-4 and order-5 solutions from the same six
    stages. The attempt is accepted when the relative error estimate is
    within tolerance, or when the step is already at min_step. A trial that
    overflows counts as infinite error and is retried smaller. Accepted
    steps advance with the order-5 solution. After every attempt the step
    is rescaled by safety*(tol/err)^0.2 (doubled when err == 0) and clamped
    to [min_step, max_step].
    """
    method = Method.RKF45

    def start(self, t0, y0):
        self.h = min(max(self.cfg.dt, self.cfg.min_step), self.cfg.max_step)
        self.rejected = 0
        self.accepted_errors: List[float] = []
        self.accepted_steps: List[float] = []

    def attempt(self, t: float, y: np.ndarray, h: float) -> Tuple[np.ndarray, float]:
        """Single embedded step; returns the order-5 solution and the error estimate."""
        k = np.empty((6, len(y)), dtype=float)
        k[0] = evaluate_derivatives(self.derivatives, t, y, self.params)
        for stage in range(1, 6):
            increment = sum(b * k[j] for j, b in enumerate(RKF45_B[stage]))
            k[stage] = evaluate_derivatives(
                self.derivatives, t + RKF45_A[stage] * h, y + h * increment, self.params
            )
        y4 = y + h * (RKF45_C4 @ k)
        y5 = y + h * (RKF45_C5 @ k)

        scale = np.maximum(np.maximum(np.abs(y), np.abs(y5)), _ERROR_SCALE_FLOOR)
        error = float(np.max(np.abs(y5 - y4) / scale))
        return y5, error

    def _next_step(self, h: float, error: float) -> float:
        cfg = self.cfg
        if error == 0.0:
            h_new = 2.0 * h
        else:
            h_new = cfg.safety_factor * h * (cfg.tolerance / error) ** 0.2
        return min(max(h_new, cfg.min_step), cfg.max_step)

    def advance(self, t, y):
        cfg = self.cfg
        while True:
            at_min_step = self.h <= cfg.min_step
            h, t_new = clip_step(t, self.h, cfg.t_end)
            y5, error = self.attempt(t, y, h)
            # an overflowing trial is rejected like any other; once forced
            # through at min_step the driver reports it as divergence
            if math.isnan(error) or not np.all(np.isfinite(y5)):
                error = math.inf

            accepted = error <= cfg.tolerance or at_min_step or h <= cfg.min_step
            self.h = self._next_step(h, error)
            if accepted:
                self.accepted_errors.append(error)
                self.accepted_steps.append(h)
                return t_new, y5
            self.rejected += 1

    def diagnostics(self):
        return {
            'rejected_steps': self.rejected,
            'error_estimates': np.array(self.accepted_errors),
            'step_sizes': np.array(self.accepted_steps),
        }

    def summary(self, steps):
        logger.debug("RKF45 accepted %d steps, rejected %d", steps, self.rejected)
        return (f"{SOLVER_INFO[self.method].name} integration completed. "
                f"Steps: {steps}, rejected: {self.rejected}")


# Adams-Bashforth weights, most recent derivative first
AB_COEFFICIENTS = {
    2: (3 / 2, -1 / 2),
    3: (23 / 12, -16 / 12, 5 / 12),
    4: (55 / 24, -59 / 24, 37 / 24, -9 / 24),
}


class AdamsBashforthStepper(Stepper):
    """
    Explicit Adams-Bashforth multistep method of order 2, 3 or 4.

    The first ``order - 1`` steps use RK4 to fill the derivative history;
    afterwards each step combines the ``order`` most recent derivatives and
    costs a single new derivative evaluation.
    """
    method = Method.ADAMS_BASHFORTH

    def start(self, t0, y0):
        self.order = self.cfg.order
        self.coefficients = AB_COEFFICIENTS[self.order]
        self.history = HistoryWindow(self.order, len(y0))
        self.startup_remaining = self.order - 1
        self.startup_steps = 0
        self.startup_derivatives: List[np.ndarray] = []
        self.history.push(evaluate_derivatives(self.derivatives, t0, y0, self.params))

    def advance(self, t, y):
        h, t_new = clip_step(t, self.cfg.dt, self.cfg.t_end)
        if self.startup_remaining > 0:
            y_new = rk4_step(self.derivatives, t, y, h, self.params)
            f_new = evaluate_derivatives(self.derivatives, t_new, y_new, self.params)
            self.startup_remaining -= 1
            self.startup_steps += 1
            self.startup_derivatives.append(f_new)
        else:
            increment = sum(c * f for c, f in zip(self.coefficients, self.history))
            y_new = y + h * increment
            f_new = evaluate_derivatives(self.derivatives, t_new, y_new, self.params)
        self.history.push(f_new)
        return t_new, y_new

    def diagnostics(self):
        return {
            'order': self.order,
            'startup_steps': self.startup_steps,
            'startup_derivatives': list(self.startup_derivatives),
        }

    def summary(self, steps):
        return (f"{SOLVER_INFO[self.method].name} (order {self.order}) "
                f"integration completed in {steps} steps")


STEPPERS = {
    Method.EULER: EulerStepper,
    Method.RK4: RK4Stepper,
    Method.RKF45: RKF45Stepper,
    Method.ADAMS_BASHFORTH: AdamsBashforthStepper,
}


class SolverInfo(NamedTuple):
    name: str
    description: str
    order: int


SOLVER_INFO: Dict[Method, SolverInfo] = {
    Method.EULER: SolverInfo(
        'Euler', 'Explicit Euler method (1st order). Simple but least accurate.', 1),
    Method.RK4: SolverInfo(
        'Runge-Kutta 4', 'Classical 4th-order Runge-Kutta with a fixed step.', 4),
    Method.RKF45: SolverInfo(
        'Runge-Kutta-Fehlberg',
        'Adaptive embedded 4(5) pair with local error control.', 5),
    Method.ADAMS_BASHFORTH: SolverInfo(
        'Adams-Bashforth',
        'Explicit multistep method (order 2-4), one evaluation per step.', 4),
}


# ========== DRIVING LOOP ==========
def _prepare_state(initial_state, n: int) -> np.ndarray:
    y0 = np.array(initial_state, dtype=float).reshape(-1)
    if len(y0) != n:
        raise ValueError(
            f"Initial state has {len(y0)} components but the system has {n} equations"
        )
    if not np.all(np.isfinite(y0)):
        raise ValueError(f"Initial state contains NaN or Inf values: {y0}")
    return y0


def run_stepper(stepper: Stepper, initial_state, initial_time: float,
                variables: Optional[Sequence[str]] = None) -> SimulationResult:
    """
    Drive a stepper from initial_time to cfg.t_end.

    The loop advances while t < t_end and fewer than max_steps steps have
    been accepted. A non-finite state ends the run as a failure without
    recording the divergent point, as does a step too small to move t.
    Any exception raised while stepping is converted into a failed result
    carrying the trajectory computed so far.
    """
    cfg = stepper.cfg
    y = _prepare_state(initial_state, len(stepper.derivatives))
    t = float(initial_time)
    times = [t]
    states = [y.copy()]
    steps = 0
    success = True
    message = None
    cap_reached = False

    # overflow shows up as inf in the state and is reported as divergence
    with Timer(f"{cfg.method.value} integration", logger=logger) as timer, \
            np.errstate(over='ignore', invalid='ignore', divide='ignore'):
        try:
            stepper.start(t, y)
            while t < cfg.t_end and steps < cfg.max_steps:
                t_new, y_new = stepper.advance(t, y)
                if not t_new > t:
                    success = False
                    message = (f"Integration stalled at t={t:.6g}: the step is below "
                               f"the floating-point resolution of t")
                    logger.warning(message)
                    break
                if not is_finite_state(y_new):
                    success = False
                    if np.all(np.isfinite(y_new)):
                        reason = (f"state exceeded the divergence threshold "
                                  f"({config.DIVERGENCE_THRESHOLD:g})")
                    else:
                        reason = "state became non-finite (NaN or Inf)"
                    message = f"Integration diverged at t={t_new:.6g}: {reason}"
                    logger.warning(message)
                    break
                t, y = t_new, y_new
                steps += 1
                times.append(t)
                states.append(y.copy())
        except Exception as exc:
            success = False
            message = f"Error during integration at t={t:.6g}: {exc}"
            logger.warning(message)

    if success:
        if t < cfg.t_end:
            cap_reached = True
            message = (f"Maximum number of steps ({cfg.max_steps}) reached at "
                       f"t={t:.6g} before t_end={cfg.t_end:.6g}")
            logger.warning(message)
        else:
            message = stepper.summary(steps)
            logger.info(message)

    diagnostics = {
        'method': cfg.method.value,
        'step_cap_reached': cap_reached,
        'elapsed': timer.elapsed,
    }
    diagnostics.update(stepper.diagnostics())
    return SimulationResult(times, states, success, message, steps,
                            variables=variables, diagnostics=diagnostics)


def _solve(method: Method, initial_state, initial_time, derivatives, parameters,
           config: SolverConfig, variables=None) -> SimulationResult:
    if config.method is not method:
        config = config.replace(method=method)
    stepper = STEPPERS[method](derivatives, parameters or {}, config)
    return run_stepper(stepper, initial_state, initial_time, variables)


def euler(initial_state, initial_time: float,
          derivatives: Sequence[DerivativeFunction], parameters: Mapping[str, float],
          config: SolverConfig, variables: Optional[Sequence[str]] = None
          ) -> SimulationResult:
    """Integrate with the explicit Euler method."""
    return _solve(Method.EULER, initial_state, initial_time, derivatives,
                  parameters, config, variables)


def rk4(initial_state, initial_time: float,
        derivatives: Sequence[DerivativeFunction], parameters: Mapping[str, float],
        config: SolverConfig, variables: Optional[Sequence[str]] = None
        ) -> SimulationResult:
    """Integrate with classical fixed-step RK4."""
    return _solve(Method.RK4, initial_state, initial_time, derivatives,
                  parameters, config, variables)


def rkf45(initial_state, initial_time: float,
          derivatives: Sequence[DerivativeFunction], parameters: Mapping[str, float],
          config: SolverConfig, variables: Optional[Sequence[str]] = None
          ) -> SimulationResult:
    """Integrate with adaptive Runge-Kutta-Fehlberg 4(5)."""
    return _solve(Method.RKF45, initial_state, initial_time, derivatives,
                  parameters, config, variables)


def adams_bashforth(initial_state, initial_time: float,
                    derivatives: Sequence[DerivativeFunction],
                    parameters: Mapping[str, float], config: SolverConfig,
                    variables: Optional[Sequence[str]] = None) -> SimulationResult:
    """Integrate with the Adams-Bashforth multistep method."""
    return _solve(Method.ADAMS_BASHFORTH, initial_state, initial_time, derivatives,
                  parameters, config, variables)


SolverFunction = Callable[..., SimulationResult]

SOLVERS: Dict[Method, SolverFunction] = {
    Method.EULER: euler,
    Method.RK4: rk4,
    Method.RKF45: rkf45,
    Method.ADAMS_BASHFORTH: adams_bashforth,
}


def get_solver(method: Union[Method, str]) -> SolverFunction:
    """
    Look up the solver function for a method.

    Raises
    ------
    UnsupportedMethodError
        If the method is not one of the four supported ones
    """
    return SOLVERS[parse_method(method)]


def integrate(initial_state, initial_time: float,
              derivatives: Sequence[DerivativeFunction],
              parameters: Mapping[str, float], config: SolverConfig,
              variables: Optional[Sequence[str]] = None) -> SimulationResult:
    """
    Numerically integrate a compiled system.

    Parameters
    ----------
    initial_state : array_like
        State at initial_time, one value per derivative function
    initial_time : float
        Start time
    derivatives : sequence of callables
        Compiled derivative functions ``f(t, state, params) -> float``
    parameters : mapping
        Parameter values for this run
    config : SolverConfig
        Method and step settings
    variables : sequence of str, optional
        Names used to label the result columns

    Returns
    -------
    SimulationResult
        Always returned for numerical problems; ``success`` is False when
        the run diverged or raised, and the trajectory holds every point
        accepted before the failure.

    Raises
    ------
    UnsupportedMethodError
        If config.method is unknown
    ValueError
        If the initial state is malformed or not finite
    """
    solver = get_solver(config.method)
    logger.debug("Integrating %d equations with %s from t=%g to t=%g",
                 len(derivatives), config.method.value, initial_time, config.t_end)
    return solver(initial_state, initial_time, derivatives, parameters, config,
                  variables)
