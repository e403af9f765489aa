"""Probability distributions and the seedable random source used by the engine.

The distribution classes wrap common SciPy distributions with a small API
tailored for simulation modeling. :class:`RandomSource` owns a single NumPy
generator, so a fixed seed always gives the same sequence of interarrival
times, uniform draws and sampled durations.
"""
from __future__ import annotations

from numbers import Real
from typing import Protocol

import numpy as np
import scipy.stats as st

from mfgsim.errors import ConfigurationError

# redraws allowed before a distribution is taken to be negative for good
MAX_RESAMPLES = 1000


def _validate_positive(value: float, name: str) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be positive.")


class distribution:
    """Lightweight wrapper around SciPy distributions.

    All concrete distribution classes inherit from this base to expose a common
    API for sampling and computing summary statistics.
    """

    def __init__(self):
        self.params = None
        self.dist_type = None
        self.dist = None

    def __str__(self):
        """Human-readable representation like 'dist.uniform(4, 5)'."""
        name = getattr(self, "dist_type", None) or self.__class__.__name__
        params = getattr(self, "params", None)

        if params is None:
            return f"dist.{name}"

        if not isinstance(params, (list, tuple)):
            params = [params]

        def _fmt(p):
            if isinstance(p, (int, float)):
                return f"{p:g}"
            return str(p)

        params_str = ", ".join(_fmt(p) for p in params)
        return f"dist.{name}({params_str})" if params_str else f"dist.{name}"

    __repr__ = __str__

    def sample(self, random_state=None):
        """Draw a single random variate from the distribution."""

        return float(self.dist.rvs(random_state=random_state))


class uniform(distribution):
    """Uniform distribution defined by lower/upper bounds."""

    def __init__(self, a, b):
        """Initialize the distribution with ``a`` (min) and ``b`` (max)."""
        if a >= b:
            raise ValueError("Lower bound must be less than upper bound.")
        self.dist_type = 'uniform'
        self.params = [a, b]
        self.dist = st.uniform(loc=a, scale=b - a)


def make_uniform(a: float, b: float) -> "uniform":
    """Create a uniform distribution with validation."""
    if a >= b:
        raise ValueError("Lower bound must be less than upper bound.")
    return uniform(a, b)


class norm(distribution):
    """
    Defines a normal distribution.
    """

    def __init__(self, mean, std):
        """
        Initializes the normal distribution.

        Parameters
        -----------
        mean : float
            The mean of the normal distribution.
        std : float
            The standard deviation of the normal distribution.
        """
        self.dist_type = 'norm'
        self.params = [mean, std]
        self.dist = st.norm(loc=mean, scale=std)


def make_norm(mean: float, std: float) -> "norm":
    """Create a normal distribution with validation."""
    _validate_positive(std, "Standard deviation")
    return norm(mean, std)


class triang(distribution):
    """
    Defines a triangular distribution.
    """

    def __init__(self, a, b, c):
        """
        Initializes the triangular distribution.

        Parameters
        -----------
        a : float
            The lower bound of the triangular distribution.
        b : float
            The mode of the triangular distribution.
        c : float
            The upper bound of the triangular distribution.
        """
        self.dist_type = 'triang'
        Loc = a
        Scale = c - a
        c_value = (b - a) / Scale
        self.params = [c_value, Loc, Scale]
        self.dist = st.triang(c_value, loc=Loc, scale=Scale)

    def __str__(self):
        c_value, Loc, Scale = self.params
        a = Loc
        c = Loc + Scale
        b = Loc + c_value * Scale
        return f"dist.triang({a:g}, {b:g}, {c:g})"


def make_triang(a: float, b: float, c: float) -> "triang":
    """Create a triangular distribution with validation."""
    if a >= c:
        raise ValueError("Lower bound must be less than upper bound.")
    if not (a <= b <= c):
        raise ValueError("Mode must lie between lower and upper bounds.")
    return triang(a, b, c)


class expon(distribution):
    """
    Defines an exponential distribution.
    """

    def __init__(self, mean):
        """
        Initializes the exponential distribution.

        Parameters
        -----------
        mean : float
            The mean of the exponential distribution, i.e. one over the rate.
        """
        self.dist_type = 'expon'
        Scale = mean
        self.params = [Scale]
        self.dist = st.expon(scale=Scale)


def make_expon(mean: float) -> "expon":
    """Create an exponential distribution with validation."""
    _validate_positive(mean, "Mean")
    return expon(mean)


class SampleSource(Protocol):
    """What the engine needs from a random number source."""

    def sample_interarrival(self) -> float:
        ...

    def sample_uniform01(self) -> float:
        ...

    def sample(self, duration) -> float:
        ...


class RandomSource:
    """Seedable source of interarrival times, uniform draws and durations.

    Parameters
    ----------
    seed : int, optional
        Seed for the underlying :func:`numpy.random.default_rng`. ``None``
        draws fresh entropy, so runs are not reproducible.
    interarrival : float | distribution, optional
        Time between raw material arrivals. Defaults to an exponential
        distribution with mean 1.0.
    """

    def __init__(self, seed: int | None = None, interarrival=None):
        self.seed = seed
        self.interarrival = interarrival if interarrival is not None else expon(1.0)
        self._rng = np.random.default_rng(seed)

    def sample_interarrival(self) -> float:
        """Return the next non-negative interarrival time."""
        return self.sample(self.interarrival)

    def sample_uniform01(self) -> float:
        """Return a uniform draw in ``[0, 1)``."""
        return float(self._rng.random())

    def sample(self, duration) -> float:
        """Return a non-negative duration.

        Numbers are returned as they are; distributions are sampled until a
        non-negative value comes up, at most :data:`MAX_RESAMPLES` times.
        """
        if isinstance(duration, distribution):
            for _ in range(MAX_RESAMPLES):
                sampled = duration.sample(random_state=self._rng)
                if sampled >= 0:
                    return sampled
            raise ConfigurationError(f"{duration} gave no non-negative duration in {MAX_RESAMPLES} draws")
        if isinstance(duration, Real) and duration >= 0:
            return float(duration)
        raise ValueError(f"durations must be non-negative numbers or distributions, got {duration!r}")
