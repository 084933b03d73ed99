"""
Utility functions and classes for the Phaseport package.
"""

import logging
from time import perf_counter
import warnings
from typing import Optional, Type
from .config import config


class Timer:
    """
    Context manager for timing code execution.

    Examples
    --------
    >>> from phaseport.utils import Timer
    >>> with Timer("Integration"):
    ...     result = eq.integrate([1, 0], cfg)
    Integration: 0.123456 s

    >>> with Timer(verbose=False) as t:
    ...     # ... code ...
    >>> print(f"Took {t.elapsed:.6f} seconds")
    """
    def __init__(self, name="Operation", verbose=True,
                 logger: Optional[logging.Logger] = None):
        """
        Parameters
        ----------
        name : str, optional
            Name to display when timing completes (default: "Operation")
        verbose : bool, optional
            Whether to report timing automatically (default: True)
        logger : logging.Logger, optional
            If given, the timing is reported at DEBUG level on this logger
            instead of being printed.
        """
        self.name = name
        self.verbose = verbose
        self.logger = logger
        self.elapsed = None

    def __enter__(self):
        self.start = perf_counter()
        return self

    def __exit__(self, *args):
        self.end = perf_counter()
        self.elapsed = self.end - self.start
        if self.verbose:
            if self.logger is not None:
                self.logger.debug("%s: %.6f s", self.name, self.elapsed)
            else:
                print(f"{self.name}: {self.elapsed:.6f} s")


def validation_error(message: str, error_class: Type[Exception] = ValueError):
    """
    Raise error or warn based on config.STRICT_VALIDATION.

    This function provides consistent validation behavior across the package.
    When STRICT_VALIDATION is True (default), raises the specified exception.
    When False, issues a UserWarning instead.

    Parameters
    ----------
    message : str
        Validation error message
    error_class : Type[Exception], optional
        Exception class to raise if STRICT_VALIDATION is True.
        Default: ValueError

    Raises
    ------
    Exception (of type error_class)
        If config.STRICT_VALIDATION is True

    Warns
    -----
    UserWarning
        If config.STRICT_VALIDATION is False
    """
    if config.STRICT_VALIDATION:
        raise error_class(message)
    else:
        warnings.warn(message, UserWarning, stacklevel=3)
