"""
Example Systems
===============

Predefined dynamical systems with suggested initial conditions and solver
settings. Each entry is a frozen ``ExampleSystem``; nothing is compiled until
``build()`` is called.

Examples
--------
>>> from phaseport import LORENZ, get_system_by_id
>>> lorenz = LORENZ.build()
>>> result = lorenz.integrate(LORENZ.initial_conditions, LORENZ.solver_config())
>>> vdp = get_system_by_id('vanderpol').build(mu=2.0)
"""
import math
import warnings
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
from .equations import EquationDefinition, parse_system
from .solvers import SolverConfig


# category id -> display name
CATEGORIES: Mapping[str, str] = MappingProxyType({
    'chaotic': 'Chaotic systems',
    'oscillator': 'Oscillators',
    'biological': 'Biological systems',
    'mechanical': 'Mechanical systems',
    'neuronal': 'Neuronal models',
    'other': 'Other',
})


@dataclass(frozen=True)
class ExampleSystem:
    """
    Immutable catalog entry for a predefined system.

    Attributes
    ----------
    id : str
        Unique identifier
    name : str
        Display name
    description : str
        One-line description
    category : str
        One of the keys of CATEGORIES
    equations : tuple of str
        Batch equations ``dX/dt = ...``
    parameters : mapping
        Default parameter values
    initial_conditions : tuple of float
        Suggested initial state
    method : str
        Suggested integration method
    dt : float
        Suggested step
    t_end : float
        Suggested end time
    references : tuple of str
        Literature references, possibly empty
    """
    id: str
    name: str
    description: str
    category: str
    equations: Tuple[str, ...]
    parameters: Mapping[str, float]
    initial_conditions: Tuple[float, ...]
    method: str = 'rk4'
    dt: float = 0.01
    t_end: float = 50.0
    references: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        # Validate parameters
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown category '{self.category}'. "
                             f"Use: {list(CATEGORIES)}")
        object.__setattr__(self, 'equations', tuple(self.equations))
        object.__setattr__(self, 'parameters', MappingProxyType(dict(self.parameters)))
        object.__setattr__(self, 'initial_conditions',
                           tuple(float(v) for v in self.initial_conditions))
        if len(self.initial_conditions) != len(self.equations):
            raise ValueError(
                f"{self.id}: {len(self.initial_conditions)} initial conditions "
                f"for {len(self.equations)} equations"
            )

    @property
    def variables(self) -> List[str]:
        return parse_system(self.equations)[0]

    def build(self, **param_overrides) -> EquationDefinition:
        """
        Compile this system, optionally overriding parameter values.

        Overrides naming parameters the system does not have are applied
        with a warning.
        """
        unknown = sorted(set(param_overrides) - set(self.parameters))
        if unknown:
            warnings.warn(f"'{self.id}' has no parameter(s) {unknown}",
                          UserWarning, stacklevel=2)
        params = dict(self.parameters)
        params.update(param_overrides)
        return EquationDefinition.from_equations(
            self.equations, params,
            id=self.id, name=self.name, description=self.description,
        )

    def solver_config(self, **overrides) -> SolverConfig:
        """Suggested SolverConfig, with any field overridden."""
        settings = {'method': self.method, 'dt': self.dt, 't_end': self.t_end}
        settings.update(overrides)
        return SolverConfig(**settings)


# ========== CHAOTIC ==========
LORENZ = ExampleSystem(
    id='lorenz',
    name='Lorenz attractor',
    description='Chaotic model of atmospheric convection, known for its butterfly shape.',
    category='chaotic',
    equations=(
        'dx/dt = sigma*(y - x)',
        'dy/dt = x*(rho - z) - y',
        'dz/dt = x*y - beta*z',
    ),
    parameters={'sigma': 10.0, 'rho': 28.0, 'beta': 8 / 3},
    initial_conditions=(1, 1, 1),
    dt=0.01, t_end=50,
    references=('Lorenz, E. N. (1963). Deterministic nonperiodic flow. '
                'Journal of the Atmospheric Sciences, 20(2), 130-141.',),
)

ROSSLER = ExampleSystem(
    id='rossler',
    name='Rossler attractor',
    description='Chaotic system simpler than Lorenz, with a spiral structure.',
    category='chaotic',
    equations=(
        'dx/dt = -y - z',
        'dy/dt = x + a*y',
        'dz/dt = b + z*(x - c)',
    ),
    parameters={'a': 0.2, 'b': 0.2, 'c': 5.7},
    initial_conditions=(1, 1, 1),
    dt=0.01, t_end=100,
    references=('Rossler, O. E. (1976). An equation for continuous chaos. '
                'Physics Letters A, 57(5), 397-398.',),
)

HENON_HEILES = ExampleSystem(
    id='henon-heiles',
    name='Henon-Heiles',
    description='Hamiltonian system modelling stellar motion in a galaxy.',
    category='chaotic',
    equations=(
        'dx/dt = px',
        'dy/dt = py',
        'dpx/dt = -x - 2*lambda*x*y',
        'dpy/dt = -y - lambda*(x*x - y*y)',
    ),
    parameters={'lambda': 1.0},
    initial_conditions=(0.1, 0.0, 0.2, 0.2),
    dt=0.01, t_end=50,
    references=('Henon, M., & Heiles, C. (1964). The applicability of the '
                'third integral of motion.',),
)

THOMAS = ExampleSystem(
    id='thomas',
    name='Thomas attractor',
    description='Cyclically symmetric 3-D chaotic system.',
    category='chaotic',
    equations=(
        'dx/dt = sin(y) - b*x',
        'dy/dt = sin(z) - b*y',
        'dz/dt = sin(x) - b*z',
    ),
    parameters={'b': 0.208186},
    initial_conditions=(0.1, 0.0, 0.0),
    dt=0.1, t_end=200,
    references=('Thomas, R. (1999). Deterministic chaos seen in terms of '
                'feedback circuits.',),
)

# 'e' here is a parameter, not Euler's number
AIZAWA = ExampleSystem(
    id='aizawa',
    name='Aizawa attractor',
    description='3-D chaotic attractor shaped like a deformed torus.',
    category='chaotic',
    equations=(
        'dx/dt = (z - b)*x - d*y',
        'dy/dt = d*x + (z - b)*y',
        'dz/dt = c + a*z - z*z*z/3 - (x*x + y*y)*(1 + e*z) + f*z*x*x*x',
    ),
    parameters={'a': 0.95, 'b': 0.7, 'c': 0.6, 'd': 3.5, 'e': 0.25, 'f': 0.1},
    initial_conditions=(0.1, 0.0, 0.0),
    dt=0.005, t_end=50,
)

# ========== OSCILLATORS ==========
VAN_DER_POL = ExampleSystem(
    id='vanderpol',
    name='Van der Pol oscillator',
    description='Oscillator with nonlinear damping; settles onto a limit cycle.',
    category='oscillator',
    equations=(
        'dx/dt = y',
        'dy/dt = mu*(1 - x*x)*y - x',
    ),
    parameters={'mu': 1.0},
    initial_conditions=(2, 0),
    dt=0.05, t_end=30,
    references=('Van der Pol, B. (1926). On relaxation-oscillations. The London, '
                'Edinburgh and Dublin Phil. Mag. & J. of Sci., 2(11), 978-992.',),
)

DUFFING = ExampleSystem(
    id='duffing',
    name='Duffing oscillator',
    description='Forced nonlinear oscillator that can behave chaotically.',
    category='oscillator',
    equations=(
        'dx/dt = v',
        'dv/dt = -delta*v - alpha*x - beta*x*x*x + gamma*cos(omega*t)',
    ),
    parameters={'alpha': -1.0, 'beta': 1.0, 'delta': 0.3, 'gamma': 0.5, 'omega': 1.2},
    initial_conditions=(1, 0),
    dt=0.01, t_end=100,
)

# ========== BIOLOGICAL ==========
LOTKA_VOLTERRA = ExampleSystem(
    id='lotka-volterra',
    name='Lotka-Volterra (predator-prey)',
    description='Classic population dynamics of predators and prey.',
    category='biological',
    equations=(
        'dx/dt = alpha*x - beta*x*y',
        'dy/dt = delta*x*y - gamma*y',
    ),
    parameters={'alpha': 1.5, 'beta': 1.0, 'gamma': 3.0, 'delta': 1.0},
    initial_conditions=(1, 1),
    dt=0.01, t_end=20,
    references=('Lotka, A. J. (1925). Elements of physical biology. '
                'Williams & Wilkins.',),
)

BRUSSELATOR = ExampleSystem(
    id='brusselator',
    name='Brusselator',
    description='Autocatalytic chemical reaction showing chemical oscillations.',
    category='biological',
    equations=(
        'dx/dt = a + x*x*y - b*x - x',
        'dy/dt = b*x - x*x*y',
    ),
    parameters={'a': 1.0, 'b': 3.0},
    initial_conditions=(1, 1),
    dt=0.01, t_end=50,
)

SIR = ExampleSystem(
    id='sir',
    name='SIR model',
    description='Classic epidemic model: susceptible, infected, recovered.',
    category='biological',
    equations=(
        'dS/dt = -beta*S*I',
        'dI/dt = beta*S*I - gamma*I',
        'dR/dt = gamma*I',
    ),
    parameters={'beta': 0.3, 'gamma': 0.1},
    initial_conditions=(0.99, 0.01, 0),
    dt=0.1, t_end=100,
)

# ========== MECHANICAL ==========
PENDULUM = ExampleSystem(
    id='pendulum',
    name='Simple pendulum',
    description='Frictionless simple pendulum with periodic motion.',
    category='mechanical',
    equations=(
        'dtheta/dt = omega',
        'domega/dt = -(g/L)*sin(theta)',
    ),
    parameters={'g': 9.81, 'L': 1.0},
    initial_conditions=(math.pi / 4, 0),
    dt=0.01, t_end=10,
)

HARMONIC = ExampleSystem(
    id='harmonic',
    name='Simple harmonic oscillator',
    description='Ideal mass-spring system.',
    category='mechanical',
    equations=(
        'dx/dt = v',
        'dv/dt = -(k/m)*x',
    ),
    parameters={'k': 1.0, 'm': 1.0},
    initial_conditions=(1, 0),
    dt=0.01, t_end=20,
)

DAMPED_OSCILLATOR = ExampleSystem(
    id='damped-oscillator',
    name='Damped oscillator',
    description='Harmonic oscillator with linear damping; decays exponentially.',
    category='mechanical',
    equations=(
        'dx/dt = v',
        'dv/dt = -(k/m)*x - (c/m)*v',
    ),
    parameters={'k': 1.0, 'm': 1.0, 'c': 0.3},
    initial_conditions=(1, 0),
    dt=0.01, t_end=20,
)

DOUBLE_WELL = ExampleSystem(
    id='double-well',
    name='Double well (bistable)',
    description='Two stable states with transitions between potential wells.',
    category='mechanical',
    equations=(
        'dx/dt = v',
        'dv/dt = a*x - b*x*x*x - gamma*v',
    ),
    parameters={'a': 1.0, 'b': 1.0, 'gamma': 0.1},
    initial_conditions=(0.5, 0),
    dt=0.01, t_end=50,
)

# ========== NEURONAL ==========
FITZHUGH_NAGUMO = ExampleSystem(
    id='fitzhugh-nagumo',
    name='FitzHugh-Nagumo',
    description='2-D reduction of Hodgkin-Huxley; canonical excitable neuron.',
    category='neuronal',
    equations=(
        'dv/dt = v - v*v*v/3 - w + I',
        'dw/dt = (v + a - b*w)/tau',
    ),
    parameters={'a': 0.7, 'b': 0.8, 'tau': 12.5, 'I': 0.5},
    initial_conditions=(-1, 1),
    dt=0.1, t_end=100,
    references=('FitzHugh, R. (1961). Impulses and physiological states in '
                'theoretical models of nerve membrane.',),
)

MORRIS_LECAR = ExampleSystem(
    id='morris-lecar',
    name='Morris-Lecar',
    description='Reduced biophysical neuron model for class I and II excitability.',
    category='neuronal',
    equations=(
        'dV/dt = (Iapp - gL*(V - VL) - gCa*0.5*(1 + tanh((V - V1)/V2))*(V - VCa) '
        '- gK*W*(V - VK))/C',
        'dW/dt = phi*(0.5*(1 + tanh((V - V3)/V4)) - W)/cosh((V - V3)/(2*V4))',
    ),
    parameters={
        'C': 20.0, 'gL': 2.0, 'gCa': 4.4, 'gK': 8.0,
        'VL': -60.0, 'VCa': 120.0, 'VK': -84.0,
        'V1': -1.2, 'V2': 18.0, 'V3': 2.0, 'V4': 30.0,
        'phi': 0.04, 'Iapp': 80.0,
    },
    initial_conditions=(-60, 0.01),
    dt=0.1, t_end=200,
    references=('Morris, C., & Lecar, H. (1981). Voltage oscillations in the '
                'barnacle giant muscle fiber.',),
)

HINDMARSH_ROSE = ExampleSystem(
    id='hindmarsh-rose',
    name='Hindmarsh-Rose',
    description='Three-variable bursting neuron; z controls the bursts.',
    category='neuronal',
    equations=(
        'dx/dt = y - a*x*x*x + b*x*x - z + I',
        'dy/dt = c - d*x*x - y',
        'dz/dt = r*(s*(x - xR) - z)',
    ),
    parameters={'a': 1.0, 'b': 3.0, 'c': 1.0, 'd': 5.0, 's': 4.0,
                'xR': -1.6, 'r': 0.006, 'I': 3.2},
    initial_conditions=(-1.5, -10, 2),
    dt=0.02, t_end=500,
    references=('Hindmarsh, J. L., & Rose, R. M. (1984). A model of neuronal '
                'bursting.',),
)

CARRILLO_HOPPENSTEADT = ExampleSystem(
    id='carrillo-hoppensteadt',
    name='Carrillo-Hoppensteadt',
    description='Relaxation oscillator unfolding the integrate-and-fire discontinuity.',
    category='neuronal',
    equations=(
        'dV/dt = epsilon * (S - V - R*I)',
        'dI/dt = V - 0.0075*I - 2*I*exp(-I/2)',
    ),
    parameters={'epsilon': 0.001, 'S': 5.0, 'R': 1.0},
    initial_conditions=(0.0, 0.0),
    dt=0.01, t_end=10000,
    references=('Carrillo, H., Hoppensteadt, F. Unfolding an electronic '
                'integrate-and-fire circuit. Biol Cybern 102, 1-8 (2010). '
                'https://doi.org/10.1007/s00422-009-0358-x',),
)


EXAMPLE_SYSTEMS: Tuple[ExampleSystem, ...] = (
    LORENZ, VAN_DER_POL, LOTKA_VOLTERRA, PENDULUM, DUFFING, ROSSLER,
    HARMONIC, DAMPED_OSCILLATOR, FITZHUGH_NAGUMO, BRUSSELATOR, SIR,
    HENON_HEILES, DOUBLE_WELL, THOMAS, AIZAWA, MORRIS_LECAR,
    HINDMARSH_ROSE, CARRILLO_HOPPENSTEADT,
)

_BY_ID: Dict[str, ExampleSystem] = {system.id: system for system in EXAMPLE_SYSTEMS}


def get_system_by_id(system_id: str) -> Optional[ExampleSystem]:
    """Catalog entry with the given id, or None."""
    return _BY_ID.get(system_id)


def get_systems_by_category(category: str) -> List[ExampleSystem]:
    """
    All catalog entries in a category, in catalog order.

    Raises
    ------
    ValueError
        If the category is not one of CATEGORIES
    """
    if category not in CATEGORIES:
        raise ValueError(f"Unknown category '{category}'. Use: {list(CATEGORIES)}")
    return [system for system in EXAMPLE_SYSTEMS if system.category == category]
