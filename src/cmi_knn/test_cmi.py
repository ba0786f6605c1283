"""
Test script for the conditional mutual information estimators.
"""
import os

import numpy as np
import pytest

from cmi_knn import (
    KraskovCMI1,
    KraskovCMI2,
    combine_statistics,
    get_last_info,
    ALGORITHM_1,
    ALGORITHM_2,
)
from cmi_knn.kraskov import RETURN_ARRAY_LENGTH


def _gaussian_data(n_pts, rho=0.6, seed=42):
    """x and y both driven by z, independent given z."""
    np.random.seed(seed)
    z = np.random.randn(n_pts, 1)
    x = rho * z + np.sqrt(1 - rho**2) * np.random.randn(n_pts, 1)
    y = rho * z + np.sqrt(1 - rho**2) * np.random.randn(n_pts, 1)
    return x, y, z


def _estimator(cls, x, y, z, n_threads=1, k=4):
    est = cls()
    est.set_property("k", k)
    est.set_property("NUM_THREADS", n_threads)
    est.initialise(x.shape[1], y.shape[1], z.shape[1])
    est.set_observations(x, y, z)
    return est


class FailingKraskov(KraskovCMI1):
    """Raises in every block except the first one."""

    def _partial_compute(self, data, config, start, n_points, want_locals):
        if start > 0:
            raise RuntimeError(f"block {start}")
        return super()._partial_compute(data, config, start, n_points, want_locals)


def test_partition_invariance():
    """Same result whatever the number of threads."""
    print("Testing invariance to the number of threads...")
    x, y, z = _gaussian_data(60)

    for cls in (KraskovCMI1, KraskovCMI2):
        reference = _estimator(cls, x, y, z, n_threads=1).compute_average_local_of_observations()
        for n_threads in (2, 3, 60):
            est = _estimator(cls, x, y, z, n_threads=n_threads)
            cmi = est.compute_average_local_of_observations()
            print(f"  {cls.__name__}, {n_threads} threads: {cmi:.6f} (1 thread: {reference:.6f})")
            np.testing.assert_allclose(cmi, reference, rtol=1e-9, atol=1e-12)

    print("  PASSED\n")


def test_blocks_recorded():
    """Blocks dispatched cover all points, the first one taking the remainder."""
    print("Testing blocks of the last computation...")
    x, y, z = _gaussian_data(50)

    est = _estimator(KraskovCMI1, x, y, z, n_threads=3)
    est.compute_average_local_of_observations()
    n_obs, n_threads, blocks = get_last_info()[:3]

    assert n_obs == 50
    assert n_threads == 3
    assert blocks == [(0, 18), (18, 16), (34, 16)], f"unexpected blocks {blocks}"

    print("  PASSED\n")


def test_local_average_consistency():
    """Mean of local values equals the average."""
    print("Testing local values against average...")
    x, y, z = _gaussian_data(80)

    for cls in (KraskovCMI1, KraskovCMI2):
        est = _estimator(cls, x, y, z, n_threads=1)
        average = est.compute_average_local_of_observations()
        local = est.compute_local_of_previous_observations()

        assert local.shape == (80,), "one local value per observation"
        np.testing.assert_allclose(np.mean(local), average, rtol=1e-9, atol=1e-12)
        np.testing.assert_allclose(est.get_last_average(), average, rtol=1e-9, atol=1e-12)

        est_threads = _estimator(cls, x, y, z, n_threads=3)
        local_threads = est_threads.compute_local_of_previous_observations()
        np.testing.assert_allclose(local_threads, local, rtol=1e-12)

    print("  PASSED\n")


def test_formula_selection():
    """Algorithm 1 and 2 formulas differ on the same statistics."""
    print("Testing closing formulas...")
    n_pts, k = 100, 4
    stats = np.array([-30.0, 1000.0, 1200.0, 2000.0, 30.0, 25.0])
    assert stats.size == RETURN_ARRAY_LENGTH

    I1 = combine_statistics(stats, n_pts, k, ALGORITHM_1)
    I2 = combine_statistics(stats, n_pts, k, ALGORITHM_2)
    print(f"  algo 1: {I1:.6f}, algo 2: {I2:.6f}")

    # <1/n_xz> + <1/n_yz> = 0.55 differs from 2/k = 0.5
    np.testing.assert_allclose(I2 - I1, 0.55 - 0.5, rtol=1e-12)
    assert I1 != I2

    with pytest.raises(ValueError):
        combine_statistics(stats, n_pts, k, 3)

    print("  PASSED\n")


def test_identity_permutation():
    """Identity reordering gives the unpermuted result."""
    print("Testing identity permutation...")
    x, y, z = _gaussian_data(60)
    est = _estimator(KraskovCMI2, x, y, z)

    reference = est.compute_average_local_of_observations()
    identity = np.arange(60)
    assert est.compute_average_local_of_observations(1, identity) == reference
    assert est.compute_average_local_of_observations(2, list(identity)) == reference
    assert est.compute_average_local_of_observations(1, None) == reference

    print("  PASSED\n")


def test_permutation_restores_data():
    """Observations are the same after a reordered computation."""
    print("Testing restoration of data after permutation...")
    x, y, z = _gaussian_data(60)
    est = _estimator(KraskovCMI1, x, y, z, n_threads=2)
    reference = est.compute_average_local_of_observations()

    for variable, attr in ((1, 'var1_observations'), (2, 'var2_observations')):
        before = getattr(est, attr)
        copy = before.copy()
        perm = np.random.permutation(60)
        shuffled = est.compute_average_local_of_observations(variable, perm)
        print(f"  variable {variable} shuffled: {shuffled:.4f} (original {reference:.4f})")

        assert getattr(est, attr) is before, "original array must be restored"
        np.testing.assert_array_equal(getattr(est, attr), copy)

    # the cached average is not replaced by surrogate values
    assert est.get_last_average() == reference

    with pytest.raises(ValueError):
        est.compute_average_local_of_observations(3, np.arange(60))
    with pytest.raises(ValueError):
        est.compute_average_local_of_observations(1, np.arange(59))

    print("  PASSED\n")


def test_permutation_restores_data_on_failure():
    """A failing computation still restores the observations."""
    print("Testing restoration of data after a failure...")
    x, y, z = _gaussian_data(30)
    est = _estimator(FailingKraskov, x, y, z, n_threads=3)

    before = est.var2_observations
    copy = before.copy()
    with pytest.raises(RuntimeError):
        est.compute_average_local_of_observations(2, np.random.permutation(30))

    assert est.var2_observations is before
    np.testing.assert_array_equal(est.var2_observations, copy)

    print("  PASSED\n")


def test_error_from_thread():
    """Errors of a block are raised after all blocks ran, first block first."""
    print("Testing errors raised in threads...")
    x, y, z = _gaussian_data(30)
    est = _estimator(FailingKraskov, x, y, z, n_threads=3)

    # blocks start at 0, 10 and 20: the ones at 10 and 20 fail
    with pytest.raises(RuntimeError, match="block 10"):
        est.compute_average_local_of_observations()
    with pytest.raises(RuntimeError, match="block 10"):
        est.compute_local_of_previous_observations()

    # single-threaded, the only block starts at 0 and succeeds
    est.set_property("NUM_THREADS", 1)
    assert np.isfinite(est.compute_average_local_of_observations())

    print("  PASSED\n")


def test_not_enough_neighbours():
    """The kernel's error surfaces through the threads."""
    print("Testing dynamic correlation exclusion too large...")
    x, y, z = _gaussian_data(20)

    for n_threads in (1, 4):
        est = _estimator(KraskovCMI2, x, y, z, n_threads=n_threads)
        est.set_property("DYN_CORR_EXCL", 18)
        with pytest.raises(ValueError):
            est.compute_average_local_of_observations()

    print("  PASSED\n")


def test_config_snapshot():
    """Changing a property during a computation does not affect it."""
    print("Testing configuration snapshot...")
    seen = []

    class Recording(KraskovCMI1):
        def _partial_compute(self, data, config, start, n_points, want_locals):
            self.k = 10
            seen.append(config.k)
            return super()._partial_compute(data, config, start, n_points, want_locals)

    x, y, z = _gaussian_data(40)
    est = _estimator(Recording, x, y, z, n_threads=4)
    est.compute_average_local_of_observations()

    assert seen == [4, 4, 4, 4], f"blocks saw k = {seen}"
    assert est.k == 10

    print("  PASSED\n")


def test_unsupported_local_for_new_data():
    """Local values on new observations are not implemented."""
    x, y, z = _gaussian_data(20)
    est = _estimator(KraskovCMI1, x, y, z)
    with pytest.raises(NotImplementedError):
        est.compute_local_using_previous_observations(x, y, z)


def test_properties():
    """Property parsing."""
    print("Testing properties...")
    est = KraskovCMI2()

    est.set_property("K", "6")
    assert est.k == 6
    est.set_property("norm_type", "euclidean")
    assert est.get_property("NORM_TYPE") == "EUCLIDEAN"
    est.set_property("num_threads", "USE_ALL")
    assert est.n_threads == (os.cpu_count() or 1)
    est.set_property("NUM_THREADS", "3")
    assert est.n_threads == 3
    est.set_property("normalise", "false")
    assert est.normalise is False
    est.set_property("SOME_UNKNOWN_PROPERTY", "whatever")

    with pytest.raises(ValueError):
        est.set_property("k", "four")
    with pytest.raises(ValueError):
        est.set_property("k", "0")
    with pytest.raises(ValueError):
        est.set_property("NUM_THREADS", "0")
    with pytest.raises(ValueError):
        est.set_property("NOISE_LEVEL_TO_ADD", "a lot")
    with pytest.raises(ValueError):
        est.set_property("NORM_TYPE", "manhattan")

    assert est.k == 6
    assert est.n_threads == 3
    assert est.add_noise is False
    assert est.get_property("NORM_TYPE") == "EUCLIDEAN"

    print("  PASSED\n")


def test_noise():
    """No noise: repeated calls identical. Noise: data differ at each finalise."""
    print("Testing noise injection...")
    x, y, z = _gaussian_data(60)

    est = _estimator(KraskovCMI1, x, y, z)
    first = est.compute_average_local_of_observations()
    assert est.compute_average_local_of_observations() == first

    est = KraskovCMI1()
    est.set_property("NOISE_LEVEL_TO_ADD", "1e-3")
    est.set_property("NUM_THREADS", 1)
    est.initialise(1, 1, 1)
    est.set_observations(x, y, z)
    x1 = est.var1_observations.copy()
    est.set_observations(x, y, z)
    x2 = est.var1_observations.copy()

    assert not np.array_equal(x1, x2), "noise must differ between finalise calls"
    assert np.max(np.abs(x1 - x2)) < 0.1

    # surrogates are computed on the noisy data, left untouched
    est.compute_average_local_of_observations(1, np.random.permutation(60))
    np.testing.assert_array_equal(est.var1_observations, x2)

    print("  PASSED\n")


def test_conditional_independence():
    """x and y independent given z: CMI ~ 0, whatever the number of threads."""
    print("Testing CMI on conditionally independent data...")
    x, y, z = _gaussian_data(500)

    est = _estimator(KraskovCMI1, x, y, z, n_threads=1)
    cmi = est.compute_average_local_of_observations()
    est4 = _estimator(KraskovCMI1, x, y, z, n_threads=4)
    cmi4 = est4.compute_average_local_of_observations()

    print(f"  CMI = {cmi:.4f} (should be ~0), 4 threads: {cmi4:.4f}")
    assert abs(cmi) < 0.05, f"CMI of conditionally independent variables should be ~0: {cmi}"
    np.testing.assert_allclose(cmi4, cmi, rtol=1e-9, atol=1e-12)

    print("  PASSED\n")


def test_cmi_correlated():
    """x and y correlated, z independent: CMI ~ MI(x,y)."""
    print("Testing CMI on correlated data...")
    np.random.seed(42)

    n_pts = 500
    x = np.random.randn(n_pts, 1)
    y = 0.8 * x + 0.6 * np.random.randn(n_pts, 1)
    z = np.random.randn(n_pts, 1)

    rho = 0.8
    MI_theory = -0.5 * np.log(1 - rho**2)
    for cls in (KraskovCMI1, KraskovCMI2):
        cmi = _estimator(cls, x, y, z, n_threads=2).compute_average_local_of_observations()
        print(f"  {cls.__name__}: CMI = {cmi:.4f}, Theory = {MI_theory:.4f}")
        assert abs(cmi - MI_theory) < 0.15, "CMI estimate differs from theory"

    print("  PASSED\n")


def test_significance():
    """Surrogates of strongly dependent data are all below the actual value."""
    print("Testing significance against shuffled surrogates...")
    np.random.seed(42)

    n_pts = 200
    x = np.random.randn(n_pts, 1)
    y = 0.8 * x + 0.6 * np.random.randn(n_pts, 1)
    z = np.random.randn(n_pts, 1)
    est = _estimator(KraskovCMI1, x, y, z, n_threads=2)

    dist = est.compute_significance(1, n_permutations=20)
    print(f"  {dist}, t-score = {dist.t_score():.2f}")
    assert dist.distribution.shape == (20,)
    assert dist.p_value == 0.0
    assert dist.actual_value == est.get_last_average()
    assert dist.t_score() > 3

    orderings = [np.arange(n_pts)] * 3
    dist = est.compute_significance(2, orderings=orderings)
    np.testing.assert_array_equal(dist.distribution, [dist.actual_value] * 3)
    assert dist.p_value == 1.0

    with pytest.raises(ValueError):
        est.compute_significance(1)

    print("  PASSED\n")


def test_observation_lifecycle():
    """Chunks, masks and errors of the observation set."""
    print("Testing observation lifecycle...")
    x, y, z = _gaussian_data(40)

    est = KraskovCMI1()
    with pytest.raises(ValueError):
        est.start_adding_observations()

    est.set_property("NUM_THREADS", 1)
    est.initialise(1, 1, 1)
    with pytest.raises(ValueError):
        est.compute_average_local_of_observations()

    est.start_adding_observations()
    est.add_observations(x[:25], y[:25], z[:25])
    est.add_observations(x[25:, 0], y[25:, 0], z[25:, 0])
    est.finalise_add_observations()
    chunked = est.compute_average_local_of_observations()
    assert est.get_num_observations() == 40

    whole = _estimator(KraskovCMI1, x, y, z).compute_average_local_of_observations()
    np.testing.assert_allclose(chunked, whole, rtol=1e-12)

    mask = np.ones(40)
    mask[::4] = 0
    est.start_adding_observations()
    est.add_observations(x, y, z, mask=mask)
    est.finalise_add_observations()
    assert est.get_num_observations() == 30

    est.start_adding_observations()
    with pytest.raises(ValueError):
        est.add_observations(x, y[:30], z)
    with pytest.raises(ValueError):
        est.add_observations(np.hstack([x, x]), y, z)
    with pytest.raises(ValueError):
        est.finalise_add_observations()

    print("  PASSED\n")


def test_multivariate_norms():
    """Multivariate variables with each norm give finite, thread-invariant results."""
    print("Testing multivariate data with each norm...")
    np.random.seed(42)
    n_pts = 80
    z = np.random.randn(n_pts, 2)
    x = z @ np.array([[0.5, 0.2, 0.0], [0.1, 0.4, 0.3]]) + np.random.randn(n_pts, 3)
    y = z[:, :1] + np.random.randn(n_pts, 2)

    for norm in ("MAX_NORM", "EUCLIDEAN", "EUCLIDEAN_SQUARED"):
        values = []
        for n_threads in (1, 3):
            est = KraskovCMI2()
            est.set_property("NORM_TYPE", norm)
            est.set_property("NUM_THREADS", n_threads)
            est.initialise(3, 2, 2)
            est.set_observations(x, y, z)
            values.append(est.compute_average_local_of_observations())
        print(f"  {norm}: {values[0]:.4f}")
        assert np.isfinite(values[0])
        np.testing.assert_allclose(values[1], values[0], rtol=1e-9, atol=1e-12)

    print("  PASSED\n")


if __name__ == "__main__":
    print("=" * 60)
    print("Testing cmi_knn estimators")
    print("=" * 60 + "\n")

    test_partition_invariance()
    test_blocks_recorded()
    test_local_average_consistency()
    test_formula_selection()
    test_identity_permutation()
    test_permutation_restores_data()
    test_permutation_restores_data_on_failure()
    test_error_from_thread()
    test_not_enough_neighbours()
    test_config_snapshot()
    test_unsupported_local_for_new_data()
    test_properties()
    test_noise()
    test_conditional_independence()
    test_cmi_correlated()
    test_significance()
    test_observation_lifecycle()
    test_multivariate_norms()

    print("=" * 60)
    print("All tests PASSED!")
    print("=" * 60)
