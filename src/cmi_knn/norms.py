"""
Norms used to measure distances between points of one variable.

Each variable (x, y or z) is compared with its own norm; the distance in a
joint space is then the largest of the distances of its variables.
"""

import numpy as np
from scipy.spatial.distance import cdist

NORM_MAX_NORM = "MAX_NORM"
NORM_EUCLIDEAN = "EUCLIDEAN"
NORM_EUCLIDEAN_SQUARED = "EUCLIDEAN_SQUARED"

_aliases = {
    'MAX_NORM': NORM_MAX_NORM,
    'MAX': NORM_MAX_NORM,
    'LINF': NORM_MAX_NORM,
    'CHEBYSHEV': NORM_MAX_NORM,
    'EUCLIDEAN': NORM_EUCLIDEAN,
    'L2': NORM_EUCLIDEAN,
    'EUCLIDEAN_SQUARED': NORM_EUCLIDEAN_SQUARED,
    'EUCLIDEAN_NORM_SQUARED': NORM_EUCLIDEAN_SQUARED,
}

# cdist metric for each norm
_metrics = {
    NORM_MAX_NORM: 'chebyshev',
    NORM_EUCLIDEAN: 'euclidean',
    NORM_EUCLIDEAN_SQUARED: 'sqeuclidean',
}


def parse_norm(name: str) -> str:
    """
    Return the canonical norm name for a user-supplied one.

    Parameters
    ----------
    name : str
        Norm name, case-insensitive (e.g. "max_norm", "euclidean")

    Returns
    -------
    str
        One of NORM_MAX_NORM, NORM_EUCLIDEAN, NORM_EUCLIDEAN_SQUARED
    """
    key = str(name).strip().upper()
    if key not in _aliases:
        raise ValueError(f"unknown norm type: {name!r}")
    return _aliases[key]


class Norm:
    """Distance between points of a marginal space under a configurable norm."""

    def __init__(self, name: str = NORM_MAX_NORM):
        self.name = parse_norm(name)

    def set_norm_to_use(self, name: str) -> None:
        self.name = parse_norm(name)

    def distances(self, point: np.ndarray, data: np.ndarray) -> np.ndarray:
        """
        Distances from one point to every row of data.

        Parameters
        ----------
        point : np.ndarray
            Point of shape (dim,)
        data : np.ndarray
            Points of shape (n_pts, dim)

        Returns
        -------
        np.ndarray
            Distances of shape (n_pts,)
        """
        return cdist(point.reshape(1, -1), data, metric=_metrics[self.name])[0]

    def __repr__(self):
        return f"Norm({self.name!r})"
