"""
Test suite for package configuration, logging setup and utilities.
"""

import logging
import pytest
import phaseport
from phaseport import config, temp_config, setup_logging
from phaseport.config import PhaseportConfig
from phaseport.utils import Timer, validation_error


class TestConfig:
    """Global configuration object."""

    def test_defaults(self):
        fresh = PhaseportConfig()
        assert fresh.DEFAULT_MAX_STEPS == 100000
        assert fresh.DEFAULT_TOLERANCE == 1e-6
        assert fresh.DEFAULT_MIN_STEP == 1e-10
        assert fresh.DEFAULT_MAX_STEP == 1.0
        assert fresh.DEFAULT_AB_ORDER == 4
        assert fresh.STRICT_VALIDATION is True

    def test_reset(self):
        config.DEFAULT_TOLERANCE = 1e-3
        config.reset()
        assert config.DEFAULT_TOLERANCE == 1e-6

    def test_repr_lists_settings(self):
        text = repr(config)
        assert 'DEFAULT_MAX_STEPS' in text
        assert 'DEFAULT_NULLCLINE_RESOLUTION' in text

    def test_package_exposes_same_object(self):
        assert phaseport.config is config


class TestTempConfig:
    """Temporary overrides."""

    def test_restores_values(self):
        with temp_config(DEFAULT_MAX_STEPS=10, STRICT_VALIDATION=False):
            assert config.DEFAULT_MAX_STEPS == 10
            assert config.STRICT_VALIDATION is False
        assert config.DEFAULT_MAX_STEPS == 100000
        assert config.STRICT_VALIDATION is True

    def test_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with temp_config(DEFAULT_MAX_STEPS=10):
                raise RuntimeError("boom")
        assert config.DEFAULT_MAX_STEPS == 100000

    def test_unknown_name_changes_nothing(self):
        """An invalid name is rejected before anything is modified."""
        with pytest.raises(AttributeError, match="NOT_A_SETTING"):
            with temp_config(DEFAULT_MAX_STEPS=10, NOT_A_SETTING=1):
                pass
        assert config.DEFAULT_MAX_STEPS == 100000


class TestValidationError:
    """Strict vs lax validation."""

    def test_strict_raises(self):
        with pytest.raises(KeyError):
            validation_error("bad", KeyError)

    def test_lax_warns(self):
        with temp_config(STRICT_VALIDATION=False):
            with pytest.warns(UserWarning, match="bad"):
                validation_error("bad")


class TestTimer:
    """Timing context manager."""

    def test_elapsed_recorded(self):
        with Timer(verbose=False) as timer:
            sum(range(1000))
        assert timer.elapsed is not None
        assert timer.elapsed >= 0

    def test_prints_when_verbose(self, capsys):
        with Timer("Block"):
            pass
        assert 'Block:' in capsys.readouterr().out

    def test_logs_to_logger(self, caplog):
        logger = logging.getLogger('phaseport.test_timer')
        with caplog.at_level(logging.DEBUG, logger='phaseport.test_timer'):
            with Timer("Logged", logger=logger):
                pass
        assert any('Logged' in r.getMessage() for r in caplog.records)


class TestLogging:
    """Logger setup."""

    def test_setup_logging(self, tmp_path):
        log_file = tmp_path / 'run.log'
        logger = setup_logging(logging.DEBUG, log_file=str(log_file))
        try:
            assert logger.name == 'phaseport'
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 2
            logger.info("hello")
            for handler in logger.handlers:
                handler.flush()
            assert 'hello' in log_file.read_text()
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
            logger.setLevel(logging.NOTSET)

    def test_integration_warnings_logged(self, caplog):
        """Divergence is reported on the solvers logger."""
        fs = phaseport.compile_system(['x*x'], ['x'])
        with caplog.at_level(logging.WARNING, logger='phaseport'):
            phaseport.integrate([1.0], 0.0, fs, {},
                                phaseport.SolverConfig('rk4', dt=0.01, t_end=5.0))
        assert any('diverged' in r.getMessage() for r in caplog.records)
