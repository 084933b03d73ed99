"""
Test suite for SimulationResult.

Tests cover:
- Construction and immutability
- Accessors (component, final_state, duration)
- Export to pandas and plain dictionaries
- Plotting functions (smoke tests)
"""

import pytest
import numpy as np
import pandas as pd
import plotly.graph_objects as go
from phaseport import SimulationResult, EquationDefinition, SolverConfig, NullclineResult


@pytest.fixture
def result():
    eq = EquationDefinition(['x', 'v'], ['v', '-x'])
    return eq.integrate([1.0, 0.0], SolverConfig('rk4', dt=0.1, t_end=2.0))


class TestConstruction:
    """Building results directly."""

    def test_default_variable_names(self):
        res = SimulationResult([0.0, 1.0], [[1.0, 2.0], [3.0, 4.0]], True)
        assert res.variables == ('y0', 'y1')

    def test_scalar_system(self):
        """A flat state list is one column."""
        res = SimulationResult([0.0, 1.0, 2.0], [1.0, 0.5, 0.25], True)
        assert res.y.shape == (3, 1)

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="differ in length"):
            SimulationResult([0.0, 1.0], [[1.0]], True)

    def test_variable_count_mismatch(self):
        with pytest.raises(ValueError):
            SimulationResult([0.0], [[1.0, 2.0]], True, variables=['x'])


class TestImmutability:
    """Results cannot be modified."""

    def test_arrays_read_only(self, result):
        with pytest.raises(ValueError):
            result.t[0] = 5.0
        with pytest.raises(ValueError):
            result.y[0, 0] = 5.0

    def test_diagnostics_read_only(self, result):
        with pytest.raises(TypeError):
            result.diagnostics['method'] = 'euler'

    def test_properties_cannot_be_set(self, result):
        with pytest.raises(AttributeError):
            result.success = False


class TestAccessors:
    """Convenience properties."""

    def test_basic_properties(self, result):
        assert result.success
        assert result.steps == 20
        assert len(result) == 21
        assert result.t0 == 0.0
        assert result.tf == 2.0
        assert result.duration == 2.0
        assert result.message

    def test_component_by_name_and_index(self, result):
        np.testing.assert_array_equal(result.component('v'), result.component(1))
        np.testing.assert_array_equal(result.component('x'), result.y[:, 0])

    def test_unknown_component(self, result):
        with pytest.raises(KeyError, match="Unknown variable"):
            result.component('z')
        with pytest.raises(IndexError):
            result.component(5)

    def test_final_state(self, result):
        np.testing.assert_allclose(result.final_state, [np.cos(2.0), -np.sin(2.0)], atol=1e-5)

    def test_repr_and_str(self, result):
        assert 'success=True' in repr(result)
        assert str(result).startswith('Simulation succeeded')


class TestExport:
    """pandas and dictionary export."""

    def test_to_dataframe(self, result):
        df = result.to_dataframe()
        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == ['t', 'x', 'v']
        assert len(df) == len(result)
        assert df['t'].iloc[-1] == 2.0

    def test_to_dict(self, result):
        data = result.to_dict()
        assert data['variables'] == ['t', 'x', 'v']
        assert data['success'] is True
        assert data['steps'] == 20
        assert data['data_points'] == 21
        assert data['data']['t'][0] == 0.0
        assert len(data['data']['x']) == 21
        assert isinstance(data['data']['v'][0], float)


class TestPlotting:
    """Plotting functions (smoke tests)."""

    def test_plot_time_series(self, result):
        fig = result.plot_time_series()
        assert isinstance(fig, go.Figure)
        assert len(fig.data) == 2

    def test_plot_time_series_subset(self, result):
        fig = result.plot_time_series(variables=['v'], n_points=5)
        assert len(fig.data) == 1
        assert len(fig.data[0].x) <= 5

    def test_plot_phase(self, result):
        fig = result.plot_phase('x', 'v')
        assert isinstance(fig, go.Figure)
        assert fig.layout.xaxis.title.text == 'x'

    def test_plot_phase_with_nullclines(self):
        eq = EquationDefinition(['x', 'v'], ['v', '-x'])
        res = eq.integrate([1.0, 0.0], SolverConfig('rk4', dt=0.1, t_end=1.0))
        nullclines = eq.nullclines((-2, 2), (-2, 2), resolution=20)
        fig = res.plot_phase(nullclines=nullclines, color='black')
        assert len(fig.data) == 3
        assert fig.data[0].line.color == 'black'

    def test_plot_phase_with_empty_nullclines(self, result):
        fig = result.plot_phase(nullclines=NullclineResult())
        assert len(fig.data) == 3
