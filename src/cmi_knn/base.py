"""
Common code for conditional mutual information estimators I(X;Y|Z).

This module gathers what does not depend on the estimation algorithm:
- initialisation with the dimensions of x, y and z
- collecting observations (possibly in several chunks) and normalising them
- string properties
- significance testing against shuffled surrogates
"""

import numpy as np
from typing import Optional

from . import masks
from . import tools
from .significance import EmpiricalDistribution

# variables that can be reordered for surrogates
VAR_X = 1
VAR_Y = 2


def parse_bool(value) -> bool:
    """Parse a boolean property value ("true", "false", "1", "0", ...)."""
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in ('true', '1', 'yes', 'on'):
        return True
    if s in ('false', '0', 'no', 'off'):
        return False
    raise ValueError(f"cannot interpret {value!r} as a boolean")


class ConditionalMIBase:
    """
    Base class for estimators of I(X;Y|Z) from multivariate observations.

    Usage:
    1. initialise(dim_x, dim_y, dim_z)
    2. set_observations(x, y, z), or start_adding_observations(),
       add_observations(...) any number of times, finalise_add_observations()
    3. compute_average_local_of_observations() and friends (see subclasses)

    Observations are stored one per row in var1_observations (x),
    var2_observations (y) and cond_observations (z).
    """

    PROP_NORMALISE = "NORMALISE"
    PROP_DYN_CORR_EXCL = "DYN_CORR_EXCL"

    def __init__(self):
        self.dimensions_var1 = 0
        self.dimensions_var2 = 0
        self.dimensions_cond = 0
        self.normalise = True
        self.dyn_corr_excl = 0
        self.debug = False

        self.var1_observations: Optional[np.ndarray] = None
        self.var2_observations: Optional[np.ndarray] = None
        self.cond_observations: Optional[np.ndarray] = None
        self._pending = None

        self.last_average = np.nan
        self.cond_mi_computed = False
        self._initialised = False

    def initialise(self, dim1: int = 1, dim2: int = 1, dim_cond: int = 1) -> None:
        """
        Prepare for a new set of observations.

        Parameters
        ----------
        dim1, dim2, dim_cond : int
            Number of dimensions of x, y and z
        """
        for d in (dim1, dim2, dim_cond):
            if int(d) < 1:
                raise ValueError("all dimensions must be at least 1")
        self.dimensions_var1 = int(dim1)
        self.dimensions_var2 = int(dim2)
        self.dimensions_cond = int(dim_cond)
        self.var1_observations = None
        self.var2_observations = None
        self.cond_observations = None
        self._pending = None
        self.last_average = np.nan
        self.cond_mi_computed = False
        self._initialised = True

    def set_property(self, name: str, value) -> None:
        """
        Set a property of the estimator.

        Valid names (case-insensitive):
        - NORMALISE: normalise each column of incoming data (default true)
        - DYN_CORR_EXCL: exclude neighbours closer than this in time,
          i.e. a Theiler window (default 0, no exclusion)

        Unknown properties are ignored.
        """
        key = name.upper()
        if key == self.PROP_NORMALISE:
            self.normalise = parse_bool(value)
        elif key == self.PROP_DYN_CORR_EXCL:
            window = int(value)
            if window < 0:
                raise ValueError(f"{self.PROP_DYN_CORR_EXCL} must be >= 0, got {window}")
            self.dyn_corr_excl = window

    def get_property(self, name: str) -> Optional[str]:
        """Return the current value of a property as a string, or None if unknown."""
        key = name.upper()
        if key == self.PROP_NORMALISE:
            return str(self.normalise).lower()
        if key == self.PROP_DYN_CORR_EXCL:
            return str(self.dyn_corr_excl)
        return None

    def set_debug(self, debug: bool) -> None:
        self.debug = bool(debug)

    def set_observations(self, x, y, z) -> None:
        """Set the full set of observations at once."""
        self.start_adding_observations()
        self.add_observations(x, y, z)
        self.finalise_add_observations()

    def start_adding_observations(self) -> None:
        if not self._initialised:
            raise ValueError("initialise() must be called before adding observations")
        self._pending = []

    def add_observations(self, x, y, z, mask=None) -> None:
        """
        Add a chunk of observations.

        Parameters
        ----------
        x, y, z : np.ndarray
            Arrays of shape (n_pts, dim) or (n_pts,) for 1-d variables
        mask : np.ndarray, optional
            Rows with mask <= 0 are discarded
        """
        if self._pending is None:
            raise ValueError("start_adding_observations() must be called first")

        x = tools.reorder(x, self.dimensions_var1)
        y = tools.reorder(y, self.dimensions_var2)
        z = tools.reorder(z, self.dimensions_cond)

        if not (x.shape[0] == y.shape[0] == z.shape[0]):
            raise ValueError(f"unequal number of observations (x: {x.shape[0]}, "
                             f"y: {y.shape[0]}, z: {z.shape[0]})")

        if mask is not None:
            x = masks.retain_from_mask(x, mask)
            y = masks.retain_from_mask(y, mask)
            z = masks.retain_from_mask(z, mask)

        self._pending.append((x, y, z))

    def finalise_add_observations(self) -> None:
        """Build the observation set from all added chunks."""
        if self._pending is None:
            raise ValueError("start_adding_observations() must be called first")

        chunks = self._pending
        self._pending = None
        if not chunks or sum(c[0].shape[0] for c in chunks) == 0:
            raise ValueError("no observations were added")

        x = np.concatenate([c[0] for c in chunks], axis=0)
        y = np.concatenate([c[1] for c in chunks], axis=0)
        z = np.concatenate([c[2] for c in chunks], axis=0)

        if self.normalise:
            x = tools.normalise(x)
            y = tools.normalise(y)
            z = tools.normalise(z)

        self.var1_observations = np.ascontiguousarray(x)
        self.var2_observations = np.ascontiguousarray(y)
        self.cond_observations = np.ascontiguousarray(z)
        self.last_average = np.nan
        self.cond_mi_computed = False

    def get_num_observations(self) -> int:
        if self.var1_observations is None:
            return 0
        return self.var1_observations.shape[0]

    def get_last_average(self) -> float:
        return self.last_average

    def _check_observations(self) -> None:
        if self.var1_observations is None:
            raise ValueError("observations must be finalised before computing")

    def compute_average_local_of_observations(self, variable: Optional[int] = None,
                                              reordering=None) -> float:
        raise NotImplementedError

    def compute_significance(self, variable: int = VAR_X,
                             n_permutations: Optional[int] = None,
                             orderings=None) -> EmpiricalDistribution:
        """
        Compare the measure with its values on shuffled surrogates.

        Parameters
        ----------
        variable : int
            Variable to shuffle: 1 for x, 2 for y
        n_permutations : int, optional
            Number of random permutations to draw
        orderings : array-like, optional
            Explicit permutations, shape (n_permutations, n_pts);
            used instead of random ones when given

        Returns
        -------
        EmpiricalDistribution
            Surrogate values, actual value and p-value
        """
        self._check_observations()
        if variable not in (VAR_X, VAR_Y):
            raise ValueError(f"variable to reorder must be 1 or 2, got {variable}")

        n_pts = self.get_num_observations()
        if orderings is None:
            if n_permutations is None or n_permutations < 1:
                raise ValueError("provide either n_permutations >= 1 or orderings")
            orderings = tools.generate_permutations(n_pts, n_permutations)

        actual = self.compute_average_local_of_observations()
        surrogates = np.zeros(len(orderings))
        for p, ordering in enumerate(orderings):
            surrogates[p] = self.compute_average_local_of_observations(variable, ordering)

        return EmpiricalDistribution(surrogates, actual)
