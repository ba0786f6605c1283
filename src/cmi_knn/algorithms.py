"""
Neighbour counting for the two KSG algorithms of conditional mutual information.

For each point i, the distance to every other point is computed in each
marginal space (x, y, z) with the chosen norm; distances in joint spaces
are the max over the variables involved.

Algorithm 1:
    eps = distance to the k-th neighbour in (x,y,z)
    n_xz, n_yz, n_z = nb of points strictly closer than eps in (x,z), (y,z), z
    I = psi(k) + < psi(n_z+1) - psi(n_xz+1) - psi(n_yz+1) >

Algorithm 2:
    eps_x, eps_y, eps_z = largest marginal distances among the k nearest neighbours
    n_xz, n_yz, n_z = nb of points within (<=) these radii
    I = psi(k) - 2/k + < psi(n_z) - psi(n_xz) - psi(n_yz) + 1/n_xz + 1/n_yz >
"""

import numpy as np
from scipy.special import digamma
from typing import Tuple

from .kraskov import (KraskovCMI, KraskovConfig, Observations, ALGORITHM_1, ALGORITHM_2,
                      INDEX_SUM_DIGAMMAS, INDEX_SUM_NXZ, INDEX_SUM_NYZ, INDEX_SUM_NZ,
                      INDEX_SUM_INV_NXZ, INDEX_SUM_INV_NYZ, RETURN_ARRAY_LENGTH)
from .norms import Norm


def _marginal_distances(data: Observations, norm: Norm, i: int,
                        exclusion: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Distances from point i to all points, in each marginal space.

    Returns
    -------
    Tuple
        (d_x, d_y, d_z, admissible), where admissible is False for i itself
        and for points within the dynamic correlation exclusion window
    """
    n_pts = data.x.shape[0]
    d_x = norm.distances(data.x[i], data.x)
    d_y = norm.distances(data.y[i], data.y)
    d_z = norm.distances(data.z[i], data.z)

    admissible = np.ones(n_pts, dtype=bool)
    admissible[max(0, i - exclusion):i + exclusion + 1] = False
    return d_x, d_y, d_z, admissible


def _check_enough_neighbours(n_candidates: int, k: int, i: int) -> None:
    if n_candidates < k:
        raise ValueError(f"point {i} has only {n_candidates} admissible neighbours, "
                         f"fewer than k={k}")


def _block_statistics(terms, n_xz, n_yz, n_z, inv_xz=None, inv_yz=None) -> np.ndarray:
    stats = np.zeros(RETURN_ARRAY_LENGTH, dtype=np.float64)
    stats[INDEX_SUM_DIGAMMAS] = np.sum(terms)
    stats[INDEX_SUM_NXZ] = np.sum(n_xz)
    stats[INDEX_SUM_NYZ] = np.sum(n_yz)
    stats[INDEX_SUM_NZ] = np.sum(n_z)
    if inv_xz is not None:
        stats[INDEX_SUM_INV_NXZ] = np.sum(inv_xz)
        stats[INDEX_SUM_INV_NYZ] = np.sum(inv_yz)
    return stats


class KraskovCMI1(KraskovCMI):
    """KSG algorithm 1 estimator of I(X;Y|Z)."""

    algorithm = ALGORITHM_1

    def _partial_compute(self, data: Observations, config: KraskovConfig, start: int,
                         n_points: int, want_locals: bool) -> np.ndarray:
        norm = Norm(config.norm)
        k = config.k
        n_xz = np.zeros(n_points, dtype=np.int64)
        n_yz = np.zeros(n_points, dtype=np.int64)
        n_z = np.zeros(n_points, dtype=np.int64)

        for p, i in enumerate(range(start, start + n_points)):
            d_x, d_y, d_z, admissible = _marginal_distances(data, norm, i, config.dyn_corr_excl)
            d_joint = np.maximum(np.maximum(d_x, d_y), d_z)

            candidates = d_joint[admissible]
            _check_enough_neighbours(candidates.size, k, i)
            eps = np.partition(candidates, k - 1)[k - 1]

            in_z = admissible & (d_z < eps)
            n_xz[p] = np.count_nonzero(in_z & (d_x < eps))
            n_yz[p] = np.count_nonzero(in_z & (d_y < eps))
            n_z[p] = np.count_nonzero(in_z)

        terms = digamma(n_z + 1) - digamma(n_xz + 1) - digamma(n_yz + 1)

        if want_locals:
            return digamma(k) + terms
        return _block_statistics(terms, n_xz, n_yz, n_z)


class KraskovCMI2(KraskovCMI):
    """KSG algorithm 2 estimator of I(X;Y|Z)."""

    algorithm = ALGORITHM_2

    def _partial_compute(self, data: Observations, config: KraskovConfig, start: int,
                         n_points: int, want_locals: bool) -> np.ndarray:
        norm = Norm(config.norm)
        k = config.k
        n_xz = np.zeros(n_points, dtype=np.int64)
        n_yz = np.zeros(n_points, dtype=np.int64)
        n_z = np.zeros(n_points, dtype=np.int64)

        for p, i in enumerate(range(start, start + n_points)):
            d_x, d_y, d_z, admissible = _marginal_distances(data, norm, i, config.dyn_corr_excl)
            d_joint = np.maximum(np.maximum(d_x, d_y), d_z)

            candidates = np.flatnonzero(admissible)
            _check_enough_neighbours(candidates.size, k, i)
            nearest = candidates[np.argpartition(d_joint[candidates], k - 1)[:k]]
            eps_x = d_x[nearest].max()
            eps_y = d_y[nearest].max()
            eps_z = d_z[nearest].max()

            in_z = admissible & (d_z <= eps_z)
            n_xz[p] = np.count_nonzero(in_z & (d_x <= eps_x))
            n_yz[p] = np.count_nonzero(in_z & (d_y <= eps_y))
            n_z[p] = np.count_nonzero(in_z)

        terms = digamma(n_z) - digamma(n_xz) - digamma(n_yz)
        inv_xz = 1.0 / n_xz
        inv_yz = 1.0 / n_yz

        if want_locals:
            return digamma(k) - 2.0 / k + terms + inv_xz + inv_yz
        return _block_statistics(terms, n_xz, n_yz, n_z, inv_xz, inv_yz)
