from pyg_base import getargspec, getcallarg, loop, wrapper
from concurrent.futures import ThreadPoolExecutor
from numba import njit
import numba
import numpy as np

__all__ = ['compiled', 'parallel', 'apply_along_first_axis', 'get_num_threads', 'set_num_threads']

def compiled(function):
    res = njit(nogil = True, error_model = 'numpy')(function)
    res.fullargspec = getargspec(function)
    return res


def parallel(function):
    """
    like compiled, but allows numba.prange loops inside function to run on numba's thread pool.
    The kernels write to disjoint slices of their output so no locking is needed.
    """
    res = njit(nogil = True, parallel = True, error_model = 'numpy')(function)
    res.fullargspec = getargspec(function)
    return res


def get_num_threads():
    """number of threads used by the parallel kernels and by apply_along_first_axis"""
    return numba.get_num_threads()


def set_num_threads(n):
    """
    sets the number of worker threads. n must be between 1 and NUMBA_NUM_THREADS (the value read at import time)
    
    :Example:
    ---------
    >>> from pyg_roll import set_num_threads, get_num_threads
    >>> set_num_threads(1)
    >>> assert get_num_threads() == 1
    """
    numba.set_num_threads(n)


@loop(dict, list, tuple)
def _stretch_over_time(arg, t):
    if isinstance(arg, np.ndarray) and len(arg.shape) and arg.shape[0] == t:
        return arg
    else:
        return np.array([arg] * t)


class apply_along_first_axis(wrapper):
    """
    applies a function along 1st axis (similar to np.apply_along_axis)
    Each time slice is independent, so slices are farmed out to a pool of threads.
    
    :Parameters:
    ------------
    base_shape:
        defines the minimum shape of the non-time axis object.

    workers: int
        number of threads. None defaults to get_num_threads(). 1 runs sequentially.
    
    :Example: base_shape
    ---------
    >>> vector = np.array([1,2,3])
    >>> mtrx = np.array([[1,2], [3,4], [5,6]])
    >>> assert mtrx.shape == (3,2)

    >>> f1 = apply_along_first_axis(np.sum, base_shape = 1) ## I EXPECT to operate on rows, so if you see a matrix, apply
    >>> assert eq(f1(mtrx), np.array([ 3,  7, 11]))
    >>> assert eq(f1(vector), 6)
        
    >>> f2 = apply_along_first_axis(np.sum, base_shape = 2) ## I am EXPECTING a matrix in each time unit
    >>> assert f2(mtrx) == np.sum(mtrx)
    
    :Example: dict outputs are stacked key by key
    ---------
    >>> f = apply_along_first_axis(lambda v: dict(total = v.sum(), top = v.max()))
    >>> assert eq(f(mtrx), dict(total = np.array([3, 7, 11]), top = np.array([2, 4, 6])))
    """
    def __init__(self, function = None, base_shape = 1, workers = None):
        return super(apply_along_first_axis, self).__init__(function = function, base_shape = base_shape, workers = workers)

    def wrapped(self, *args, **kwargs):
        arg = getcallarg(self.function, args, kwargs)
        if not isinstance(arg, np.ndarray) or len(arg.shape)<=self.base_shape:
            return self.function(*args, **kwargs)        
        t = arg.shape[0]
        args_, kwargs_ = _stretch_over_time((args, kwargs), t = t)       
        slice_ = lambda i: self.function(*[arg_[i] for arg_ in args_], **{k : v[i] for k, v in kwargs_.items()})
        workers = get_num_threads() if self.workers is None else self.workers
        if workers > 1 and t > 1:
            with ThreadPoolExecutor(max_workers = workers) as pool:
                res = list(pool.map(slice_, range(t)))
        else:
            res = [slice_(i) for i in range(t)]
        if len(res) and isinstance(res[0], dict):
            return type(res[0])({k : np.array([r.get(k) for r in res]) for k in res[0].keys()})
        else:
            return np.array(res)
