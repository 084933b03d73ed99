'''Phase portrait toolkit
SimulationResult class definition'''

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union, TYPE_CHECKING
from .config import config

if TYPE_CHECKING:
    from .nullclines import NullclineResult


def _freeze(value):
    """Return a read-only copy of a diagnostics value."""
    if isinstance(value, np.ndarray):
        value = value.copy()
        value.flags.writeable = False
        return value
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


class SimulationResult:
    """
    Finished output of one integration run.

    The result is immutable: times and states are stored as read-only numpy
    arrays and a new run always produces a new result.

    Attributes:
        t: Times, strictly increasing, shape (n_points,)
        y: States, shape (n_points, n_variables); row k is the state at t[k]
        success: False if the run diverged or raised during stepping
        message: Human-readable completion or failure message
        steps: Number of accepted steps
        variables: Variable names labelling the state columns
        diagnostics: Read-only mapping of method-specific run information
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, t, y, success: bool, message: Optional[str] = None,
                 steps: int = 0, variables: Optional[Sequence[str]] = None,
                 diagnostics: Optional[Mapping[str, Any]] = None):
        t = np.array(t, dtype=float)
        y = np.array(y, dtype=float)
        if y.ndim == 1:
            # empty trajectories and scalar systems
            y = y.reshape(len(t), -1)
        if len(t) != len(y):
            raise ValueError(
                f"Time and state arrays differ in length: {len(t)} vs {len(y)}"
            )
        t.flags.writeable = False
        y.flags.writeable = False
        self._t = t
        self._y = y
        self._success = bool(success)
        self._message = message
        self._steps = int(steps)

        n_vars = y.shape[1] if y.ndim == 2 else 0
        if variables is None:
            variables = tuple(f"y{i}" for i in range(n_vars))
        elif len(variables) != n_vars:
            raise ValueError(
                f"Expected {n_vars} variable names, got {len(variables)}"
            )
        self._variables = tuple(variables)
        self._diagnostics = MappingProxyType(
            {key: _freeze(value) for key, value in (diagnostics or {}).items()}
        )

    # ========== PROPERTY ACCESS ==========
    @property
    def t(self) -> np.ndarray:
        return self._t

    @property
    def y(self) -> np.ndarray:
        return self._y

    @property
    def success(self) -> bool:
        return self._success

    @property
    def message(self) -> Optional[str]:
        return self._message

    @property
    def steps(self) -> int:
        return self._steps

    @property
    def variables(self) -> Tuple[str, ...]:
        return self._variables

    @property
    def diagnostics(self) -> Mapping[str, Any]:
        return self._diagnostics

    @property
    def t0(self) -> float:
        return float(self._t[0])

    @property
    def tf(self) -> float:
        return float(self._t[-1])

    @property
    def duration(self) -> float:
        """Time span actually covered by the trajectory."""
        return self.tf - self.t0

    @property
    def final_state(self) -> np.ndarray:
        """State at the last accepted point."""
        return self._y[-1]

    @property
    def step_cap_reached(self) -> bool:
        return bool(self._diagnostics.get('step_cap_reached', False))

    # ========== UTILITY METHODS ==========
    def component(self, key: Union[str, int]) -> np.ndarray:
        """
        Time history of one state component.

        Parameters:
            key: Variable name or column index
        """
        return self._y[:, self._index(key)]

    def _index(self, key: Union[str, int]) -> int:
        if isinstance(key, str):
            try:
                return self._variables.index(key)
            except ValueError:
                raise KeyError(
                    f"Unknown variable '{key}'. Available: {list(self._variables)}"
                ) from None
        index = int(key)
        if not -len(self._variables) <= index < len(self._variables):
            raise IndexError(f"Component index {index} out of range")
        return index

    def to_dataframe(self) -> pd.DataFrame:
        """
        Export the trajectory to a pandas DataFrame.

        Returns:
            DataFrame with a 't' column followed by one column per variable
        """
        data = {'t': self._t}
        for i, name in enumerate(self._variables):
            data[name] = self._y[:, i]
        return pd.DataFrame(data)

    def to_dict(self) -> Dict[str, Any]:
        """
        Plain-Python summary suitable for JSON export.

        Returns:
            Dictionary with variables, status fields and the data columns
        """
        return {
            'variables': ['t', *self._variables],
            'success': self._success,
            'message': self._message,
            'steps': self._steps,
            'data_points': len(self._t),
            'data': {
                't': self._t.tolist(),
                **{name: self._y[:, i].tolist()
                   for i, name in enumerate(self._variables)},
            },
        }

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        return len(self._t)

    def __repr__(self):
        return (f"SimulationResult(success={self._success}, steps={self._steps}, "
                f"points={len(self._t)}, t=[{self.t0:g}, {self.tf:g}])")

    def __str__(self):
        status = "succeeded" if self._success else "failed"
        return f"Simulation {status}: {self._message}"

    # ========== PLOTTING ==========
    # thin helpers for quick inspection; rendering proper lives in the host app
    def _plot_slice(self, n_points: Optional[int]) -> slice:
        n_points = n_points or config.DEFAULT_PLOT_POINTS
        stride = max(1, int(np.ceil(len(self._t) / n_points)))
        return slice(None, None, stride)

    def plot_time_series(self, variables: Optional[Sequence[Union[str, int]]] = None,
                         n_points: Optional[int] = None) -> go.Figure:
        """
        Plot state components against time.

        Parameters:
            variables: Components to draw (default: all)
            n_points: Maximum number of points per line
                      (default: config.DEFAULT_PLOT_POINTS)

        Returns:
            Plotly Figure object
        """
        if variables is None:
            variables = self._variables
        sl = self._plot_slice(n_points)

        fig = go.Figure()
        for key in variables:
            idx = self._index(key)
            fig.add_trace(go.Scatter(
                x=self._t[sl],
                y=self._y[sl, idx],
                mode='lines',
                name=self._variables[idx],
            ))
        fig.update_layout(xaxis_title='t', yaxis_title='state',
                          title='Time series', showlegend=True)
        return fig

    def plot_phase(self, x: Union[str, int] = 0, y: Union[str, int] = 1,
                   nullclines: Optional["NullclineResult"] = None,
                   color: Optional[str] = None,
                   n_points: Optional[int] = None) -> go.Figure:
        """
        Plot a 2-D phase-space projection, optionally with nullclines.

        Parameters:
            x, y: Components on the horizontal and vertical axes
            nullclines: Nullcline point sets to overlay as markers
            color: Trajectory color (default: config.DEFAULT_TRAJ_COLOR)
            n_points: Maximum number of trajectory points

        Returns:
            Plotly Figure object
        """
        ix, iy = self._index(x), self._index(y)
        sl = self._plot_slice(n_points)
        color = color or config.DEFAULT_TRAJ_COLOR

        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=self._y[sl, ix],
            y=self._y[sl, iy],
            mode='lines',
            line=dict(color=color, width=2),
            name='Trajectory',
        ))
        if nullclines is not None:
            names = (f"d{self._variables[0]}/dt = 0", f"d{self._variables[1]}/dt = 0") \
                if len(self._variables) >= 2 else ("first", "second")
            for points, name, c in zip(nullclines, names,
                                       config.DEFAULT_NULLCLINE_COLORS):
                fig.add_trace(go.Scatter(
                    x=points[:, 0],
                    y=points[:, 1],
                    mode='markers',
                    marker=dict(color=c, size=3),
                    name=name,
                ))
        fig.update_layout(xaxis_title=self._variables[ix],
                          yaxis_title=self._variables[iy],
                          title='Phase portrait', showlegend=True)
        return fig
