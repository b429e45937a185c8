import numpy as np
from numba import prange
from pyg_roll._decorators import compiled, parallel
from pyg_roll._kinds import VAR, SD, SCALE
from pyg_roll._math import statistic_calculation
from pyg_roll._index import cell_2d
from pyg_roll._accumulator import two_sum

__all__ = ['roll_direct']

###############
##
## direct window sums
##
###############

@compiled
def _direct_cell(x, i, j, weights, width, min_obs, any_na, center, scale, na_restore, stat):
    """
    recomputes the statistic of cell (i, j) from scratch over rows i, i-1, ..., i-width+1.
    The row at lag count gets weights[n-1-count], so weights need not be geometric.
    """
    if na_restore and np.isnan(x[i, j]):
        return x[i, j]
    n = len(weights)
    n_obs = 0
    sum_w = 0.0
    sum_x = 0.0
    sumsq_w = 0.0
    err_w = 0.0
    err_x = 0.0
    prod = 1.0
    x_last = np.nan
    count = 0
    while count < width and i >= count:
        row = i - count
        if not any_na[row] and not np.isnan(x[row, j]):
            w = weights[n - count - 1]
            v = x[row, j]
            if n_obs == 0:
                x_last = v
            n_obs += 1
            sum_w, e = two_sum(sum_w, w)
            err_w += e
            sum_x, e = two_sum(sum_x, w * v)
            err_x += e
            sumsq_w += w * w
            prod *= w * v
        count += 1
    sum_w += err_w
    sum_x += err_x

    mean_x = 0.0
    sumsq_x = 0.0
    if stat == VAR or stat == SD or stat == SCALE:
        if center and n_obs > 0:
            mean_x = sum_x / sum_w
        if stat != SCALE or scale:
            count = 0
            while count < width and i >= count:
                row = i - count
                if not any_na[row] and not np.isnan(x[row, j]):
                    d = x[row, j] - mean_x
                    sumsq_x += weights[n - count - 1] * d * d
                count += 1
    return statistic_calculation(stat, n_obs, min_obs, sum_w, sum_x, sumsq_w, sumsq_x, prod, mean_x, x_last, center, scale)


@parallel
def _roll_direct(x, weights, width, min_obs, any_na, center, scale, na_restore, stat):
    n_rows, n_cols = x.shape
    res = np.empty(x.shape)
    for z in prange(n_rows * n_cols):
        i, j = cell_2d(z, n_cols)
        res[i, j] = _direct_cell(x, i, j, weights, width, min_obs, any_na, center, scale, na_restore, stat)
    return res


def roll_direct(x, weights, width, min_obs, any_na, stat, center = True, scale = False, na_restore = False):
    """
    O(width) per cell rolling statistics for arbitrary non-negative weights. Cells are independent and spread over threads.
    Takes the same arguments as roll_online and, for geometric weights, returns the same values up to rounding.
    """
    return _roll_direct(x, weights, width, min_obs, any_na, center, scale, na_restore, int(stat))
