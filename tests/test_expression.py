"""
Test suite for the expression compiler.

Tests cover:
- Variable binding and implicit parameters
- Operator precedence and powers
- Whitelisted functions and constants
- Compile errors and validation results
- Evaluation edge cases (division by zero, domain errors)
"""

import math
import pytest
from phaseport import (
    compile_expression, compile_system, validate_expression, extract_parameters,
    CompileError, CompileErrorKind, MissingParameterError,
)
from phaseport.expression import (
    parse_expression, check_variables, tokenize, Power, StateSlot, ParameterSlot,
)


def ev(expression, variables=('x',), state=(0.0,), params=None, t=0.0, declared=()):
    """Compile and evaluate in one go."""
    f = compile_expression(expression, variables, declared)
    return f(t, list(state), params or {})


class TestBinding:
    """Variables, parameters and time."""

    def test_lorenz_first_component(self):
        """sigma*(y - x) with sigma=10 at [1, 2, 3] gives 10."""
        f = compile_expression('sigma*(y - x)', ['x', 'y', 'z'])
        assert f(0.0, [1.0, 2.0, 3.0], {'sigma': 10}) == 10.0

    def test_whole_token_matching(self):
        """A variable never matches inside a longer identifier."""
        assert ev('xy + x', ['x', 'xy'], [1.0, 5.0]) == 6.0
        assert ev('x2 - x', ['x', 'x2'], [1.0, 10.0]) == 9.0

    def test_state_slots_follow_variable_order(self):
        """Position in the variable set decides the state slot."""
        tree, _ = parse_expression('b', ['a', 'b'])
        assert tree == StateSlot(1, 'b')

    def test_time_variable(self):
        """t is the evaluation time."""
        assert ev('t*x', state=[3.0], t=2.0) == 6.0

    def test_implicit_parameters_discovered(self):
        """Free identifiers become parameters in order of appearance."""
        f = compile_expression('alpha*x - beta*x*y + alpha', ['x', 'y'])
        assert f.parameters == ('alpha', 'beta')

    def test_parameter_slots_shared(self):
        """Repeated parameter uses share one slot."""
        tree, params = parse_expression('k + k', ['x'])
        assert params == ('k',)
        assert tree.left == tree.right == ParameterSlot(0, 'k')

    def test_missing_parameter_raises_key_error(self):
        """Evaluating without a parameter value names the parameter."""
        f = compile_expression('k*x', ['x'])
        with pytest.raises(KeyError):
            f(0.0, [1.0], {})
        with pytest.raises(MissingParameterError, match="'k'"):
            f(0.0, [1.0])

    def test_extract_parameters(self):
        """Functions, constants and variables are not parameters."""
        found = extract_parameters('alpha*x - beta*sin(y) + pi*gamma', ['x', 'y'])
        assert found == ['alpha', 'beta', 'gamma']

    def test_compiled_expression_is_pure(self):
        """Repeated calls give the same value and leave inputs untouched."""
        f = compile_expression('x*x + c', ['x'])
        state = [2.0]
        params = {'c': 1.0}
        assert f(0.0, state, params) == f(0.0, state, params) == 5.0
        assert state == [2.0]
        assert params == {'c': 1.0}


class TestOperators:
    """Precedence, associativity and powers."""

    def test_precedence(self):
        """* binds tighter than +."""
        assert ev('1 + 2*3') == 7.0
        assert ev('(1 + 2)*3') == 9.0
        assert ev('8/4/2') == 1.0
        assert ev('5 - 3 - 1') == 1.0

    def test_caret_and_double_star(self):
        """^ and ** are both power."""
        assert ev('x^2', state=[3.0]) == 9.0
        assert ev('x**2', state=[3.0]) == 9.0

    def test_power_is_right_associative(self):
        """2^3^2 is 2^(3^2)."""
        assert ev('2^3^2') == 512.0

    def test_unary_minus_binds_looser_than_power(self):
        """-x^2 is -(x^2)."""
        assert ev('-x^2', state=[3.0]) == -9.0

    def test_signed_exponent(self):
        """Exponent may carry its own sign."""
        assert ev('x^-1', state=[2.0]) == 0.5

    def test_parenthesised_base_and_exponent(self):
        """Parenthesised operands of a power."""
        assert ev('(x + 1)^(1/2)', state=[3.0]) == pytest.approx(2.0)

    def test_power_becomes_explicit_node(self):
        """Powers are explicit tree nodes."""
        tree, _ = parse_expression('x^y', ['x', 'y'])
        assert isinstance(tree, Power)

    def test_scientific_notation(self):
        """Numeric literals accept exponents."""
        assert ev('1e-3*x', state=[2000.0]) == pytest.approx(2.0)
        assert ev('.5 + 2.') == 2.5


class TestFunctionsAndConstants:
    """Whitelisted functions and constants."""

    @pytest.mark.parametrize("expression, expected", [
        ('sin(0)', 0.0),
        ('cos(0)', 1.0),
        ('exp(0)', 1.0),
        ('ln(e)', 1.0),
        ('log10(100)', 2.0),
        ('sqrt(16)', 4.0),
        ('abs(-3)', 3.0),
        ('floor(2.7)', 2.0),
        ('ceil(2.1)', 3.0),
        ('tanh(0)', 0.0),
        ('pow(2, 3)', 8.0),
    ])
    def test_function_values(self, expression, expected):
        """Functions evaluate like their math counterparts."""
        assert ev(expression) == pytest.approx(expected)

    def test_sign(self):
        """sign returns -1, 0 or 1."""
        assert ev('sign(x)', state=[-2.0]) == -1.0
        assert ev('sign(x)', state=[0.0]) == 0.0
        assert ev('sign(x)', state=[5.0]) == 1.0

    def test_round_half_up(self):
        """round rounds halves towards +inf."""
        assert ev('round(2.5)') == 3.0
        assert ev('round(-2.5)') == -2.0

    def test_constants(self):
        """pi, e, PI, E."""
        assert ev('pi') == pytest.approx(math.pi)
        assert ev('PI') == pytest.approx(math.pi)
        assert ev('e') == pytest.approx(math.e)
        assert ev('E') == pytest.approx(math.e)

    def test_declared_parameter_shadows_constant(self):
        """A declared parameter named e is not Euler's number."""
        assert ev('e*x', state=[3.0], params={'e': 2.0}, declared=['e']) == 6.0
        assert ev('e*x', state=[3.0]) == pytest.approx(3 * math.e)


class TestIEEESemantics:
    """Numerical failures give inf/NaN instead of raising."""

    def test_division_by_zero(self):
        """Nonzero over zero is signed infinity; 0/0 is NaN."""
        assert ev('1/x', state=[0.0]) == math.inf
        assert ev('-1/x', state=[0.0]) == -math.inf
        assert math.isnan(ev('0/x', state=[0.0]))

    def test_domain_errors(self):
        """Out-of-domain arguments give NaN."""
        assert math.isnan(ev('sqrt(x)', state=[-1.0]))
        assert math.isnan(ev('asin(x)', state=[2.0]))

    def test_overflow(self):
        """Overflow gives infinity."""
        assert ev('exp(x)', state=[1000.0]) == math.inf
        assert ev('x^2', state=[1e200]) == math.inf
        assert ev('sinh(x)', state=[-1000.0]) == -math.inf


class TestCompileErrors:
    """Rejected expressions."""

    @pytest.mark.parametrize("expression, kind", [
        ('', CompileErrorKind.EMPTY_EXPRESSION),
        ('   ', CompileErrorKind.EMPTY_EXPRESSION),
        ('(x + 1', CompileErrorKind.UNBALANCED_PARENTHESES),
        (')x(', CompileErrorKind.UNBALANCED_PARENTHESES),
        ('x + 1)', CompileErrorKind.UNBALANCED_PARENTHESES),
        ('x $ 1', CompileErrorKind.INVALID_CHARACTER),
        ('x = 1', CompileErrorKind.INVALID_CHARACTER),
        ('x +* 2', CompileErrorKind.SYNTAX_ERROR),
        ('2 x', CompileErrorKind.SYNTAX_ERROR),
        ('foo(x)', CompileErrorKind.SYNTAX_ERROR),
        ('sin', CompileErrorKind.SYNTAX_ERROR),
        ('sin(x, x)', CompileErrorKind.SYNTAX_ERROR),
        ('pow(x)', CompileErrorKind.SYNTAX_ERROR),
        ('()', CompileErrorKind.SYNTAX_ERROR),
    ])
    def test_error_kinds(self, expression, kind):
        """Each malformed expression raises the matching error kind."""
        with pytest.raises(CompileError) as excinfo:
            compile_expression(expression, ['x'])
        assert excinfo.value.kind is kind

    def test_compile_error_is_value_error(self):
        """CompileError can be caught as ValueError."""
        with pytest.raises(ValueError):
            compile_expression('(', ['x'])

    def test_error_message_names_expression(self):
        """The message includes the offending text."""
        with pytest.raises(CompileError, match="x \\+\\* 2"):
            compile_expression('x +* 2', ['x'])

    def test_variable_count_mismatch(self):
        """compile_system needs one expression per variable."""
        with pytest.raises(CompileError) as excinfo:
            compile_system(['y', '-x', '0'], ['x', 'y'])
        assert excinfo.value.kind is CompileErrorKind.VARIABLE_COUNT_MISMATCH

    @pytest.mark.parametrize("variables", [['x', 'x'], ['t'], ['sin'], ['1x'], ['']])
    def test_invalid_variable_sets(self, variables):
        """Duplicate, reserved and malformed variable names are rejected."""
        with pytest.raises(CompileError) as excinfo:
            check_variables(variables)
        assert excinfo.value.kind is CompileErrorKind.INVALID_VARIABLE

    def test_compile_system_returns_one_function_per_variable(self):
        """Functions come back in variable order."""
        fs = compile_system(['v', '-x'], ['x', 'v'])
        assert [f(0.0, [1.0, 2.0]) for f in fs] == [2.0, -1.0]


class TestValidation:
    """validate_expression never raises for bad input."""

    def test_valid_expression(self):
        """A good expression validates."""
        result = validate_expression('a*x + sin(y)', ['x', 'y'])
        assert result.valid
        assert bool(result)
        assert result.error is None

    def test_invalid_expression(self):
        """A bad expression reports its error kind."""
        result = validate_expression('(x + 1', ['x'])
        assert not result
        assert result.kind is CompileErrorKind.UNBALANCED_PARENTHESES
        assert 'parentheses' in result.error.lower()

    def test_validation_does_not_need_parameter_values(self):
        """Unknown identifiers are fine: they are parameters."""
        assert validate_expression('mystery*x', ['x'])

    def test_tokenizer_ends_with_end_token(self):
        """The token stream is terminated."""
        tokens = tokenize('x^2')
        assert [tok.kind for tok in tokens] == ['NAME', 'POW', 'NUMBER', 'END']
