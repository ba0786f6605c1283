"""
Data processing utilities for conditional mutual information estimation.
"""

import numpy as np
from typing import List, Tuple


def reorder(x: np.ndarray, dim: int) -> np.ndarray:
    """
    Make any array compatible with the estimators.

    Ensures observations are rows, that there are `dim` columns,
    and that data is a C-contiguous float64 array.

    Parameters
    ----------
    x : np.ndarray
        Array of shape (n_pts,) when dim is 1, or (n_pts, dim)
    dim : int
        Expected number of dimensions of each observation

    Returns
    -------
    np.ndarray
        Well-aligned array of shape (n_pts, dim)
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 1:
        if dim != 1:
            raise ValueError(f"1-d data given for a variable of dimension {dim}")
        x = x.reshape((x.size, 1))
    elif x.ndim != 2:
        raise ValueError(f"data must be 1-d or 2-d, got {x.ndim} dimensions")

    if x.shape[1] != dim:
        raise ValueError(f"expected {dim} columns, got {x.shape[1]}")

    if x.flags['C_CONTIGUOUS']:
        return x
    else:
        return x.copy()


def split_blocks(n_pts: int, n_blocks: int) -> List[Tuple[int, int]]:
    """
    Split the index range [0, n_pts) into contiguous blocks.

    Every block holds n_pts // n_blocks points, except the first one which
    also takes the n_pts % n_blocks remaining points.

    Parameters
    ----------
    n_pts : int
        Number of points
    n_blocks : int
        Number of blocks (>= 1)

    Returns
    -------
    List[Tuple[int, int]]
        (start, length) of each block, in index order
    """
    if n_blocks < 1:
        raise ValueError("n_blocks must be at least 1")
    size = n_pts // n_blocks
    res = n_pts % n_blocks

    blocks = []
    for b in range(n_blocks):
        start = 0 if b == 0 else size * b + res
        length = size + res if b == 0 else size
        blocks.append((start, length))
    return blocks


def normalise(x: np.ndarray) -> np.ndarray:
    """
    Normalise each column to zero mean and unit standard deviation.

    Constant columns are only centred.

    Parameters
    ----------
    x : np.ndarray
        Data of shape (n_pts, dim)

    Returns
    -------
    np.ndarray
        New normalised array
    """
    means = np.mean(x, axis=0)
    stds = np.std(x, axis=0)
    stds[stds == 0] = 1.0
    return (x - means) / stds


def add_noise(x: np.ndarray, noise_level: float) -> None:
    """
    Add independent Gaussian noise to every coordinate, in place.

    Parameters
    ----------
    x : np.ndarray
        Data of shape (n_pts, dim), modified in place
    noise_level : float
        Standard deviation of the noise
    """
    x += np.random.normal(0.0, noise_level, size=x.shape)


def extract_time_points(x: np.ndarray, indices) -> np.ndarray:
    """
    Gather observations in a new order: out[i] = x[indices[i]].

    Parameters
    ----------
    x : np.ndarray
        Data of shape (n_pts, dim)
    indices : array-like of int
        Indices to extract, usually a permutation of range(n_pts)

    Returns
    -------
    np.ndarray
        New array of shape (len(indices), dim)
    """
    indices = np.asarray(indices, dtype=np.intp)
    if indices.ndim != 1:
        raise ValueError("indices must be a 1-d sequence")
    return np.ascontiguousarray(x[indices, :])


def generate_permutations(n_pts: int, n_permutations: int) -> np.ndarray:
    """
    Draw random permutations of range(n_pts) (shuffle surrogates).

    Parameters
    ----------
    n_pts : int
        Length of each permutation
    n_permutations : int
        Number of permutations

    Returns
    -------
    np.ndarray
        Array of shape (n_permutations, n_pts)
    """
    out = np.zeros((n_permutations, n_pts), dtype=np.intp)
    for p in range(n_permutations):
        out[p] = np.random.permutation(n_pts)
    return out
