"""
Phaseport: Phase Portraits of Ordinary Differential Equations

A Python package for compiling systems of ODEs written as text, integrating
them with fixed-step, adaptive and multistep solvers, and extracting
nullclines of planar systems.
"""

# Core classes
from .equations import EquationDefinition, parse_system
from .expression import (
    CompileError,
    CompileErrorKind,
    CompiledExpression,
    MissingParameterError,
    ValidationResult,
    compile_expression,
    compile_system,
    extract_parameters,
    validate_expression,
)
from .solvers import (
    Method,
    SolverConfig,
    UnsupportedMethodError,
    SOLVER_INFO,
    get_solver,
    integrate,
)
from .result import SimulationResult, SimulationResult as Result
from .nullclines import NullclineResult, compute_nullclines

# Configuration and logging
from .config import config, temp_config
from .logging_config import setup_logging

# Example catalog
from .defaults import (
    ExampleSystem,
    EXAMPLE_SYSTEMS,
    CATEGORIES,
    LORENZ,
    VAN_DER_POL,
    HARMONIC,
    get_system_by_id,
    get_systems_by_category,
)

# Package metadata
__version__ = "0.1.0"

# Define what gets imported with "from phaseport import *"
__all__ = [
    # Classes
    "EquationDefinition",
    "CompiledExpression",
    "SolverConfig",
    "SimulationResult",
    "NullclineResult",
    "ExampleSystem",
    "Method",
    "ValidationResult",
    # Abbreviations
    "Result",
    # Functions
    "compile_expression",
    "compile_system",
    "validate_expression",
    "extract_parameters",
    "parse_system",
    "integrate",
    "get_solver",
    "compute_nullclines",
    "get_system_by_id",
    "get_systems_by_category",
    "setup_logging",
    "temp_config",
    # Errors
    "CompileError",
    "CompileErrorKind",
    "MissingParameterError",
    "UnsupportedMethodError",
    # Constants
    "config",
    "SOLVER_INFO",
    "EXAMPLE_SYSTEMS",
    "CATEGORIES",
    "LORENZ",
    "VAN_DER_POL",
    "HARMONIC",
]
