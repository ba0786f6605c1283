"""
Configuration and information functions for the cmi_knn module.
"""

import os
from typing import List

# Default parameters
k_default = 4

# Token accepted in place of a thread count
USE_ALL_THREADS = "USE_ALL"

# Last computation info
_last_info = {
    'n_obs': 0,
    'n_threads': 0,
    'blocks': [],
    'avg_n_xz': 0.0,
    'avg_n_yz': 0.0,
    'avg_n_z': 0.0,
    'elapsed': 0.0,
}

# Multithreading settings
_n_threads = -1  # -1 for auto
_use_threads = True


def get_last_info(verbosity: int = 0) -> List:
    """
    Returns information from the last computation.

    Parameters
    ----------
    verbosity : int
        If > 0, print information to console

    Returns
    -------
    List
        [n_obs, n_threads, blocks, avg_n_xz, avg_n_yz, avg_n_z, elapsed]
    """
    if verbosity > 0:
        print("from last function call:")
        print(f"- nb of observations:         {_last_info['n_obs']}")
        print(f"- nb of threads:              {_last_info['n_threads']}")
        print(f"- blocks (start, length):     {_last_info['blocks']}")
        print(f"- <n_xz>, <n_yz>, <n_z>:      {_last_info['avg_n_xz']:.3f}, "
              f"{_last_info['avg_n_yz']:.3f}, {_last_info['avg_n_z']:.3f}")
        print(f"- elapsed time:               {_last_info['elapsed']:.3f} s")

    return [
        _last_info['n_obs'],
        _last_info['n_threads'],
        list(_last_info['blocks']),
        _last_info['avg_n_xz'],
        _last_info['avg_n_yz'],
        _last_info['avg_n_z'],
        _last_info['elapsed'],
    ]


def multithreading(do_what="info", nb_cores: int = 0) -> None:
    """
    Configure the default number of threads for new estimators.

    Parameters
    ----------
    do_what : str or int
        "info": display current settings
        "auto": use all available cores
        "single": single-threaded
        int > 0: use this many threads
    nb_cores : int
        If > 0, use this many cores (same as passing an int as do_what)
    """
    global _n_threads, _use_threads

    if nb_cores > 0:
        do_what = nb_cores

    if do_what == "info":
        avail = os.cpu_count() or 1
        current = _n_threads if _n_threads > 0 else avail
        print(f"currently using {current} out of {avail} cores available")
        if _n_threads == -1:
            print(f" (-1 means largest number available, so {avail} here)")
    elif do_what == "auto":
        _use_threads = True
        _n_threads = -1
    elif do_what == "single":
        _use_threads = False
        _n_threads = 1
    elif isinstance(do_what, int) and do_what > 0:
        _use_threads = True
        _n_threads = do_what
    else:
        raise ValueError("invalid parameter value")


def get_threads_number() -> int:
    """Get the current default number of threads."""
    if _use_threads:
        if _n_threads == -1:
            return os.cpu_count() or 1
        return _n_threads
    return 1


def parse_threads_number(value) -> int:
    """
    Parse a thread count given as an int, a string, or the USE_ALL token.

    Raises
    ------
    ValueError
        If the value is neither a positive integer nor USE_ALL
    """
    if isinstance(value, str) and value.strip().upper() == USE_ALL_THREADS:
        return os.cpu_count() or 1
    n_threads = int(value)
    if n_threads < 1:
        raise ValueError(f"number of threads must be at least 1, got {n_threads}")
    return n_threads
