"""Smoke tests to verify package imports work."""

def test_package_imports():
    """Test that all main classes can be imported."""
    from phaseport import EquationDefinition, SolverConfig, SimulationResult, NullclineResult
    assert EquationDefinition is not None
    assert SolverConfig is not None
    assert SimulationResult is not None
    assert NullclineResult is not None

def test_version_exists():
    """Test that version is defined."""
    import phaseport
    assert hasattr(phaseport, '__version__')
    assert phaseport.__version__ == "0.1.0"

def test_can_compile_expression():
    """Test basic expression compilation."""
    from phaseport import compile_expression
    f = compile_expression('2*x', ['x'])
    assert f(0.0, [3.0]) == 6.0

def test_can_create_system():
    """Test basic EquationDefinition creation."""
    from phaseport import EquationDefinition
    eq = EquationDefinition(['x', 'v'], ['v', '-k*x'], {'k': 4.0})
    assert eq.dimension == 2
    assert eq.parameters['k'] == 4.0

def test_can_create_solver_config():
    """Test basic SolverConfig creation."""
    from phaseport import SolverConfig, Method
    cfg = SolverConfig('rk4', dt=0.1, t_end=1.0)
    assert cfg.method is Method.RK4
    assert cfg.max_steps == 100000

def test_star_import_names_exist():
    """Everything in __all__ is importable."""
    import phaseport
    for name in phaseport.__all__:
        assert hasattr(phaseport, name), name
