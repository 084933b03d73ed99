"""
Test suite for the example system catalog.

Tests cover:
- Every entry compiles and integrates for a short time
- Lookup by id and category
- Parameter overrides and suggested solver settings
"""

import pytest
import numpy as np
from phaseport import (
    EXAMPLE_SYSTEMS, CATEGORIES, LORENZ, HARMONIC, EquationDefinition, SolverConfig, Method,
    get_system_by_id, get_systems_by_category,
)
from phaseport.defaults import ExampleSystem, AIZAWA


class TestCatalog:
    """Catalog contents."""

    def test_ids_unique(self):
        ids = [system.id for system in EXAMPLE_SYSTEMS]
        assert len(ids) == len(set(ids)) == 18

    @pytest.mark.parametrize("system", EXAMPLE_SYSTEMS, ids=lambda s: s.id)
    def test_every_system_builds(self, system):
        """Each entry compiles with its own parameters."""
        eq = system.build()
        assert isinstance(eq, EquationDefinition)
        assert eq.id == system.id
        assert eq.dimension == len(system.initial_conditions)
        assert set(eq.parameter_names) <= set(system.parameters)
        assert np.all(np.isfinite(eq.evaluate(0.0, system.initial_conditions)))

    @pytest.mark.parametrize("system", EXAMPLE_SYSTEMS, ids=lambda s: s.id)
    def test_every_system_integrates_briefly(self, system):
        """A short run with the suggested step succeeds."""
        eq = system.build()
        cfg = system.solver_config(t_end=20 * system.dt)
        result = eq.integrate(system.initial_conditions, cfg)
        assert result.success
        assert result.steps == 20

    def test_categories_valid(self):
        for system in EXAMPLE_SYSTEMS:
            assert system.category in CATEGORIES


class TestLookup:
    """Finding systems."""

    def test_get_by_id(self):
        assert get_system_by_id('lorenz') is LORENZ
        assert get_system_by_id('nope') is None

    def test_get_by_category(self):
        chaotic = get_systems_by_category('chaotic')
        assert LORENZ in chaotic
        assert all(system.category == 'chaotic' for system in chaotic)
        assert get_systems_by_category('other') == []

    def test_unknown_category(self):
        with pytest.raises(ValueError, match="Unknown category"):
            get_systems_by_category('quantum')


class TestExampleSystem:
    """Building and configuring entries."""

    def test_parameter_override(self):
        eq = HARMONIC.build(k=4.0)
        assert eq.parameters['k'] == 4.0
        np.testing.assert_allclose(eq.evaluate(0.0, [1.0, 0.0]), [0.0, -4.0])

    def test_unknown_override_warns(self):
        with pytest.warns(UserWarning, match="no parameter"):
            HARMONIC.build(zeta=1.0)

    def test_solver_config(self):
        cfg = LORENZ.solver_config()
        assert isinstance(cfg, SolverConfig)
        assert cfg.method is Method.RK4
        assert cfg.dt == 0.01
        assert cfg.t_end == 50

    def test_solver_config_override(self):
        cfg = LORENZ.solver_config(method='rkf45', tolerance=1e-8)
        assert cfg.method is Method.RKF45
        assert cfg.tolerance == 1e-8

    def test_aizawa_e_is_a_parameter(self):
        """The Aizawa system's e shadows Euler's number."""
        eq = AIZAWA.build()
        assert 'e' in eq.parameter_names
        slow = AIZAWA.build(e=0.0).evaluate(0.0, [1.0, 1.0, 1.0])
        fast = eq.evaluate(0.0, [1.0, 1.0, 1.0])
        # dz/dt contains -(x^2 + y^2)*(1 + e*z)
        assert slow[2] - fast[2] == pytest.approx(2 * 0.25)

    def test_entries_frozen(self):
        with pytest.raises(AttributeError):
            LORENZ.dt = 1.0
        with pytest.raises(TypeError):
            LORENZ.parameters['sigma'] = 0.0

    def test_variables(self):
        assert LORENZ.variables == ['x', 'y', 'z']

    def test_invalid_entry(self):
        with pytest.raises(ValueError, match="initial conditions"):
            ExampleSystem(id='bad', name='Bad', description='', category='other',
                          equations=('dx/dt = 1',), parameters={},
                          initial_conditions=(1.0, 2.0))
        with pytest.raises(ValueError, match="Unknown category"):
            ExampleSystem(id='bad', name='Bad', description='', category='weird',
                          equations=('dx/dt = 1',), parameters={},
                          initial_conditions=(1.0,))
