"""
Masking utilities for handling missing or invalid observations.

Observations are stored one per row, so a mask has one entry per row.
"""

import numpy as np


def mask_finite(x: np.ndarray) -> np.ndarray:
    """
    Create a mask of observations whose coordinates are all finite.

    Parameters
    ----------
    x : np.ndarray
        Data array of shape (n_pts,) or (n_pts, dim)

    Returns
    -------
    np.ndarray
        Mask of type int8 and shape (n_pts,), where 1 indicates a valid row
    """
    return mask_clean(np.isfinite(x))


def mask_clean(x: np.ndarray) -> np.ndarray:
    """
    Make any nd-array a compatible mask for the code.

    A row is valid only if it is valid in every dimension (AND logic).

    Parameters
    ----------
    x : np.ndarray
        Mask array of shape (n_pts,) or (n_pts, dim)

    Returns
    -------
    np.ndarray
        1D mask of type int8
    """
    y = np.asarray(x).astype('i1')
    if y.ndim > 1:
        y = np.all(y > 0, axis=tuple(range(1, y.ndim))).astype('i1')
    return y.flatten()


def retain_from_mask(x: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """
    Extract the observations corresponding to valid mask values.

    Parameters
    ----------
    x : np.ndarray
        Data array of shape (n_pts, dim)
    mask : np.ndarray
        Mask array of shape (n_pts,)

    Returns
    -------
    np.ndarray
        Filtered data containing only rows where mask > 0
    """
    y = mask_clean(mask)
    if y.size != x.shape[0]:
        raise ValueError(f"mask has {y.size} entries but data has {x.shape[0]} observations")
    ind = np.where(y > 0)[0]
    return np.array(x)[ind, ...].copy()
