"""
Kraskov-Stogbauer-Grassberger (KSG) estimation of conditional mutual information.

The conditional mutual information I(X;Y|Z) is computed by examining
neighbours in the full joint space (x,y,z), as proposed by Frenzel and Pompe,
rather than by combining two mutual informations.

This module implements what is common to both KSG algorithms:
- splitting the observations into blocks processed by parallel threads
- merging the partial sums of each block
- the closing formula of each algorithm
- evaluation under a reordering of x or y (for surrogate tests)

The per-point neighbour counting lives in algorithms.py.
Results are in nats.

References:
- Kraskov, A., Stogbauer, H., Grassberger, P. (2004) PRE 69, 066138
- Frenzel, S., Pompe, B. (2007) PRL 99, 204101
"""

import warnings
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from time import time
from typing import NamedTuple, Optional

import numpy as np
from scipy.special import digamma

from . import commons
from . import tools
from .base import ConditionalMIBase, VAR_X, VAR_Y
from .norms import Norm

ALGORITHM_1 = 1
ALGORITHM_2 = 2

# Layout of the partial statistics returned for a block of points
INDEX_SUM_DIGAMMAS = 0
INDEX_SUM_NXZ = 1
INDEX_SUM_NYZ = 2
INDEX_SUM_NZ = 3
INDEX_SUM_INV_NXZ = 4  # algorithm 2 only
INDEX_SUM_INV_NYZ = 5  # algorithm 2 only
RETURN_ARRAY_LENGTH = 6


class KraskovConfig(NamedTuple):
    """Settings captured at the start of a computation."""
    k: int
    norm: str
    n_threads: int
    dyn_corr_excl: int
    algorithm: int
    debug: bool


class Observations(NamedTuple):
    """Read-only view of the observation set shared by all threads."""
    x: np.ndarray
    y: np.ndarray
    z: np.ndarray


class BlockResult(NamedTuple):
    """Outcome of one block: either its values, or the error it raised."""
    start: int
    n_points: int
    values: Optional[np.ndarray]
    error: Optional[BaseException]


def combine_statistics(stats: np.ndarray, n_points: int, k: int,
                       algorithm: int, debug: bool = False) -> float:
    """
    Turn the merged partial statistics into the average conditional MI.

    Parameters
    ----------
    stats : np.ndarray
        Partial statistics summed over all points (length 6)
    n_points : int
        Number of points the sums were taken over
    k : int
        Number of neighbours
    algorithm : int
        1 or 2, must match the counting used to produce the sums
    debug : bool
        If True, print the terms of the formula

    Returns
    -------
    float
        Average conditional MI in nats
    """
    averages = np.asarray(stats, dtype=np.float64) / float(n_points)
    avg_digammas = averages[INDEX_SUM_DIGAMMAS]
    psi_k = digamma(k)

    if debug:
        print(f"<n_xz>={averages[INDEX_SUM_NXZ]:.3f}, <n_yz>={averages[INDEX_SUM_NYZ]:.3f}, "
              f"<n_z>={averages[INDEX_SUM_NZ]:.3f}")

    if algorithm == ALGORITHM_1:
        result = psi_k + avg_digammas
        if debug:
            print(f"Av = digamma(k)={psi_k:.3f} + <digammas>={avg_digammas:.3f} = {result:.3f}")
    elif algorithm == ALGORITHM_2:
        avg_inv_nxz = averages[INDEX_SUM_INV_NXZ]
        avg_inv_nyz = averages[INDEX_SUM_INV_NYZ]
        result = psi_k - 2.0 / k + avg_digammas + avg_inv_nxz + avg_inv_nyz
        if debug:
            print(f"Av = digamma(k)={psi_k:.3f} + <digammas>={avg_digammas:.3f} "
                  f"+ <inverses>={avg_inv_nxz + avg_inv_nyz:.3f} - 2/k={2.0 / k:.3f} = {result:.3f}"
                  f" (<1/n_yz>={avg_inv_nyz:.3f}, <1/n_xz>={avg_inv_nxz:.3f})")
    else:
        raise ValueError(f"algorithm must be 1 or 2, got {algorithm}")

    return float(result)


class KraskovCMI(ConditionalMIBase):
    """
    KSG estimator of I(X;Y|Z), common part of both algorithms.

    Concrete estimators are KraskovCMI1 and KraskovCMI2 (see algorithms.py),
    which fix `algorithm` and implement `_partial_compute`.

    Properties (see set_property):
    - k: number of neighbours in the joint space (default 4)
    - NORM_TYPE: norm used in each marginal space (default MAX_NORM)
    - NOISE_LEVEL_TO_ADD: std of Gaussian noise added to the data (default: no noise)
    - NUM_THREADS: number of threads, or USE_ALL (default: all cores)
    - NORMALISE, DYN_CORR_EXCL: see ConditionalMIBase
    """

    PROP_K = "K"
    PROP_NORM_TYPE = "NORM_TYPE"
    PROP_ADD_NOISE = "NOISE_LEVEL_TO_ADD"
    PROP_NUM_THREADS = "NUM_THREADS"
    USE_ALL_THREADS = commons.USE_ALL_THREADS

    algorithm: Optional[int] = None

    def __init__(self):
        super().__init__()
        self.k = commons.k_default
        self.norm = Norm()
        self.add_noise = False
        self.noise_level = 0.0
        self.n_threads = commons.get_threads_number()

    def set_property(self, name: str, value) -> None:
        """
        Set a property of the estimator (names are case-insensitive).

        New values apply to the next computation; a computation already
        running keeps the settings it started with.

        Raises
        ------
        ValueError
            If the value cannot be parsed; the estimator is then unchanged
        """
        key = name.upper()
        if key == self.PROP_K:
            k = int(value)
            if k < 1:
                raise ValueError(f"k must be at least 1, got {k}")
            self.k = k
        elif key == self.PROP_NORM_TYPE:
            self.norm.set_norm_to_use(value)
        elif key == self.PROP_ADD_NOISE:
            noise_level = float(value)
            self.add_noise = True
            self.noise_level = noise_level
        elif key == self.PROP_NUM_THREADS:
            self.n_threads = commons.parse_threads_number(value)
        else:
            super().set_property(name, value)

    def get_property(self, name: str) -> Optional[str]:
        key = name.upper()
        if key == self.PROP_K:
            return str(self.k)
        if key == self.PROP_NORM_TYPE:
            return self.norm.name
        if key == self.PROP_ADD_NOISE:
            return str(self.noise_level)
        if key == self.PROP_NUM_THREADS:
            return str(self.n_threads)
        return super().get_property(name)

    def finalise_add_observations(self) -> None:
        super().finalise_add_observations()

        if self.add_noise:
            tools.add_noise(self.var1_observations, self.noise_level)
            tools.add_noise(self.var2_observations, self.noise_level)
            tools.add_noise(self.cond_observations, self.noise_level)

    def compute_average_local_of_observations(self, variable: Optional[int] = None,
                                              reordering=None) -> float:
        """
        Compute the average conditional MI, possibly with x or y reordered.

        Parameters
        ----------
        variable : int, optional
            1 to reorder x, 2 to reorder y
        reordering : array-like of int, optional
            New order of the chosen variable: x_new[i] = x[reordering[i]].
            If None, no reordering is done.

        Returns
        -------
        float
            Average conditional MI in nats
        """
        if reordering is None:
            time1 = time()
            self.last_average = self._compute_from_observations(False)
            self.cond_mi_computed = True
            if self.debug:
                print(f"Calculation time: {time() - time1:.3f} sec")
            return self.last_average

        with self._reordered(variable, reordering):
            return self._compute_from_observations(False)

    def compute_local_of_previous_observations(self) -> np.ndarray:
        """
        Compute the local conditional MI of each observation.

        Returns
        -------
        np.ndarray
            Local values in nats, whose mean is the average conditional MI
        """
        local_values = self._compute_from_observations(True)
        self.last_average = float(np.mean(local_values))
        self.cond_mi_computed = True
        return local_values

    def compute_local_using_previous_observations(self, x, y, z) -> np.ndarray:
        raise NotImplementedError("Local method not implemented yet")

    @contextmanager
    def _reordered(self, variable: int, reordering):
        """Replace x or y by a reordered copy, restoring the original on exit."""
        self._check_observations()
        if variable == VAR_X:
            attr = 'var1_observations'
        elif variable == VAR_Y:
            attr = 'var2_observations'
        else:
            raise ValueError(f"variable to reorder must be 1 or 2, got {variable}")

        original = getattr(self, attr)
        if len(reordering) != original.shape[0]:
            raise ValueError(f"reordering has {len(reordering)} entries "
                             f"for {original.shape[0]} observations")

        setattr(self, attr, tools.extract_time_points(original, reordering))
        try:
            yield
        finally:
            setattr(self, attr, original)

    def _snapshot_config(self) -> KraskovConfig:
        if self.algorithm not in (ALGORITHM_1, ALGORITHM_2):
            raise ValueError(f"{type(self).__name__} does not define a KSG algorithm")
        return KraskovConfig(k=self.k, norm=self.norm.name, n_threads=self.n_threads,
                             dyn_corr_excl=self.dyn_corr_excl,
                             algorithm=self.algorithm, debug=self.debug)

    def _compute_from_observations(self, want_locals: bool):
        """
        Run the neighbour counting over all points, in parallel blocks if required.

        Parameters
        ----------
        want_locals : bool
            If True, return the local values; otherwise the average

        Returns
        -------
        np.ndarray or float
            Local conditional MI values, or their average
        """
        self._check_observations()
        config = self._snapshot_config()
        data = Observations(self.var1_observations, self.var2_observations,
                            self.cond_observations)
        n_pts = data.x.shape[0]
        if n_pts < 2 * config.k:
            warnings.warn(f"Only {n_pts} points for k={config.k} neighbors")

        time1 = time()
        if config.n_threads == 1:
            blocks = [(0, n_pts)]
            values = self._partial_compute(data, config, 0, n_pts, want_locals)
        else:
            blocks = tools.split_blocks(n_pts, config.n_threads)
            if config.debug:
                size, res = divmod(n_pts, config.n_threads)
                print(f"Computing Kraskov conditional MI with {config.n_threads} threads "
                      f"({size} timesteps each, plus {res} residual)")
                for t, (start, length) in enumerate(blocks):
                    print(f"{t}.Thread: from {start} to {start + length}")

            with ThreadPoolExecutor(max_workers=config.n_threads) as executor:
                futures = [executor.submit(self._run_block, data, config, start, length, want_locals)
                           for start, length in blocks]
            results = [f.result() for f in futures]

            for r in results:
                if r.error is not None:
                    raise r.error

            if want_locals:
                values = np.empty(n_pts, dtype=np.float64)
                for r in results:
                    values[r.start:r.start + r.n_points] = r.values
            else:
                values = np.zeros(RETURN_ARRAY_LENGTH, dtype=np.float64)
                for r in results:
                    values += r.values

        self._record_info(config, blocks, n_pts, values, want_locals, time() - time1)

        if want_locals:
            return values
        return combine_statistics(values, n_pts, config.k, config.algorithm, config.debug)

    def _run_block(self, data: Observations, config: KraskovConfig, start: int,
                   n_points: int, want_locals: bool) -> BlockResult:
        try:
            values = self._partial_compute(data, config, start, n_points, want_locals)
        except Exception as e:
            return BlockResult(start, n_points, None, e)
        return BlockResult(start, n_points, values, None)

    def _partial_compute(self, data: Observations, config: KraskovConfig, start: int,
                         n_points: int, want_locals: bool) -> np.ndarray:
        """
        Count neighbours for points start .. start + n_points - 1.

        Must only read `data` and `config`: it runs concurrently in several threads.

        Returns
        -------
        np.ndarray
            The local values of these points if want_locals, otherwise
            their partial statistics (length RETURN_ARRAY_LENGTH)
        """
        raise NotImplementedError

    @staticmethod
    def _record_info(config, blocks, n_pts, values, want_locals, elapsed):
        commons._last_info['n_obs'] = n_pts
        commons._last_info['n_threads'] = config.n_threads
        commons._last_info['blocks'] = list(blocks)
        commons._last_info['elapsed'] = elapsed
        if not want_locals and n_pts > 0:
            commons._last_info['avg_n_xz'] = values[INDEX_SUM_NXZ] / n_pts
            commons._last_info['avg_n_yz'] = values[INDEX_SUM_NYZ] / n_pts
            commons._last_info['avg_n_z'] = values[INDEX_SUM_NZ] / n_pts
