# cmi_knn - Conditional mutual information estimation with k-NN
# Based on the algorithms of Kraskov, Stogbauer, Grassberger (2004),
# in the joint-space form of Frenzel and Pompe (2007).
#
# This module provides pure Python implementations, parallelised over
# blocks of observations, without requiring compilation of C/C++ code.

from .algorithms import (
    KraskovCMI1,
    KraskovCMI2,
)

from .kraskov import (
    KraskovCMI,
    KraskovConfig,
    combine_statistics,
    ALGORITHM_1,
    ALGORITHM_2,
)

from .base import (
    ConditionalMIBase,
    VAR_X,
    VAR_Y,
)

from .commons import (
    get_last_info,
    multithreading,
    get_threads_number,
)

from .norms import (
    Norm,
    NORM_MAX_NORM,
    NORM_EUCLIDEAN,
    NORM_EUCLIDEAN_SQUARED,
)

from .tools import (
    split_blocks,
    normalise,
    add_noise,
    extract_time_points,
    generate_permutations,
)

from .masks import (
    mask_finite,
    mask_clean,
    retain_from_mask,
)

from .significance import EmpiricalDistribution

__version__ = "0.1.0"
__all__ = [
    # Estimators
    "KraskovCMI1",
    "KraskovCMI2",
    "KraskovCMI",
    "KraskovConfig",
    "ConditionalMIBase",
    "combine_statistics",
    "ALGORITHM_1",
    "ALGORITHM_2",
    "VAR_X",
    "VAR_Y",
    # Commons
    "get_last_info",
    "multithreading",
    "get_threads_number",
    # Norms
    "Norm",
    "NORM_MAX_NORM",
    "NORM_EUCLIDEAN",
    "NORM_EUCLIDEAN_SQUARED",
    # Tools
    "split_blocks",
    "normalise",
    "add_noise",
    "extract_time_points",
    "generate_permutations",
    # Masks
    "mask_finite",
    "mask_clean",
    "retain_from_mask",
    # Significance
    "EmpiricalDistribution",
]
