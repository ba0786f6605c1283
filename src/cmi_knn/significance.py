"""
Empirical distribution of an estimator under surrogate (shuffled) data.
"""

import numpy as np


class EmpiricalDistribution:
    """
    Values of a measure computed on surrogate data, compared to its actual value.

    Parameters
    ----------
    distribution : array-like
        Measure computed on each surrogate
    actual_value : float
        Measure computed on the original data

    Attributes
    ----------
    p_value : float
        Fraction of surrogates whose value is at least the actual value
    """

    def __init__(self, distribution, actual_value: float):
        self.distribution = np.asarray(distribution, dtype=np.float64)
        self.actual_value = float(actual_value)
        n_surrogates = self.distribution.size
        if n_surrogates == 0:
            self.p_value = np.nan
        else:
            n_above = np.sum(self.distribution >= self.actual_value)
            self.p_value = n_above / n_surrogates

    @property
    def mean(self) -> float:
        return float(np.mean(self.distribution))

    @property
    def std(self) -> float:
        return float(np.std(self.distribution))

    def t_score(self) -> float:
        """Distance of the actual value to the surrogate mean, in surrogate stds."""
        std = self.std
        if std == 0:
            return np.inf if self.actual_value != self.mean else 0.0
        return (self.actual_value - self.mean) / std

    def __repr__(self):
        return (f"EmpiricalDistribution(actual={self.actual_value:.6f}, "
                f"n_surrogates={self.distribution.size}, p_value={self.p_value:.4f})")
