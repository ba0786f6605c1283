import numpy
import cmi_knn

from time import time
from numpy.random import normal


# parameters (change them to play)
ndim = 1        # dimensionality of x, y and z (usually 1, but you can play)
npoints = 2000
k = 4
n_surrogates = 20


def compare_threads(x, y, z, algo=1):
    est = cmi_knn.KraskovCMI1() if algo == 1 else cmi_knn.KraskovCMI2()
    est.set_property("k", k)
    est.initialise(ndim, ndim, ndim)
    est.set_observations(x, y, z)

    for n_threads in (1, 2, 4, "USE_ALL"):
        est.set_property("NUM_THREADS", n_threads)
        t1 = time()
        res = est.compute_average_local_of_observations()
        t1 = time() - t1
        print("CMI algo", algo, "with", est.n_threads, "threads =", res, "\t(elapsed time :", t1, "s)")

    dist = est.compute_significance(1, n_permutations=n_surrogates)
    print("surrogates (x shuffled): mean =", dist.mean, "+/-", dist.std, "p-value =", dist.p_value)


# first, x and y only linked through z:
print()
print("normal distributions, x and y driven by z,", npoints, "points,", ndim, "dimensions.")
z = normal(size=(npoints, ndim))
x = 0.6*z + 0.8*normal(size=(npoints, ndim))
y = 0.6*z + 0.8*normal(size=(npoints, ndim))
compare_threads(x, y, z, algo=1)
compare_threads(x, y, z, algo=2)

# then, a direct link from x to y:
print()
print("normal distributions, y = x/2 + z/2 + noise, so I(x;y|z) > 0:")
y = 0.5*x + 0.5*z + 0.5*normal(size=(npoints, ndim))
compare_threads(x, y, z, algo=1)
print("theory (for ndim=1) :", -0.5*numpy.log(1 - 0.25*0.64/(0.25*0.64 + 0.25)))
