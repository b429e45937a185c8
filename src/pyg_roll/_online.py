import numpy as np
from numba import prange
from pyg_roll._decorators import compiled, parallel
from pyg_roll._kinds import PROD, VAR, SD, SCALE
from pyg_roll._math import decay_factor, statistic_calculation
from pyg_roll._accumulator import new_accumulator, accumulate, anchor, SUM_W, SUM_X, SUMSQ_W, SUMSQ_X, MEAN_X

__all__ = ['roll_online']

###############
##
## online recurrences
##
###############

@compiled
def _is_valid(x, any_na, i, j):
    return not any_na[i] and not np.isnan(x[i, j])


@compiled
def _online_column(x, j, weights, width, min_obs, any_na, center, scale, na_restore, stat, res):
    n = len(weights)
    lam = decay_factor(weights, width)
    w_last = weights[n - 1]
    w_first = weights[n - width]
    own = stat == VAR or stat == SD or (stat == SCALE and scale)
    track_mean = center and (own or stat == SCALE)
    acc = new_accumulator()
    n_obs = 0
    x_last = np.nan
    for i in range(x.shape[0]):
        w_new = 0.0
        x_new = 0.0
        if _is_valid(x, any_na, i, j):
            n_obs += 1
            w_new = w_last
            x_new = x[i, j]
            x_last = x_new
        w_old = 0.0
        x_old = 0.0
        if i >= width and _is_valid(x, any_na, i - width, j):
            n_obs -= 1
            w_old = w_first
            x_old = x[i - width, j]
        accumulate(acc, n_obs, lam, w_new, x_new, x_new, w_old, x_old, x_old, track_mean, False, own)
        if (i + 1) % width == 0:
            anchor(acc, x, j, x, j, any_na, i, weights, width, track_mean, False, own)
        if na_restore and np.isnan(x[i, j]):
            res[i, j] = x[i, j]
        else:
            res[i, j] = statistic_calculation(stat, n_obs, min_obs, acc[SUM_W], acc[SUM_X], acc[SUMSQ_W], acc[SUMSQ_X], np.nan, acc[MEAN_X], x_last, center, scale)
    return res


@compiled
def _online_prod_column(x, j, weights, width, min_obs, any_na, na_restore, res):
    """
    product of weight * value over the window. Leaving rows are divided out, so x must not contain zeros.
    Every surviving row ages by lam each step: n_exp holds lam ** (number of valid rows carried over from the previous step).
    Since that number moves by at most one per row, n_exp is maintained by a single multiplication or division.
    """
    n = len(weights)
    lam = decay_factor(weights, width)
    w_last = weights[n - 1]
    w_first = weights[n - width]
    n_obs = 0
    n_old = 0
    n_exp = 1.0
    prod_w = 1.0
    prod_x = 1.0
    for i in range(x.shape[0]):
        valid = _is_valid(x, any_na, i, j)
        if valid:
            n_obs += 1
        w_old = 1.0
        x_old = 1.0
        if i >= width and _is_valid(x, any_na, i - width, j):
            n_obs -= 1
            w_old = w_first
            x_old = x[i - width, j]
        if valid:
            n_new = n_obs - 1
            w_new = w_last
            x_new = x[i, j]
        else:
            n_new = n_obs
            w_new = 1.0
            x_new = 1.0
        if n_new == 0:
            n_exp = 1.0
        elif n_new > n_old:
            n_exp = n_exp * lam
        elif n_new < n_old:
            n_exp = n_exp / lam
        n_old = n_new
        prod_w = prod_w * w_new * n_exp / w_old
        prod_x = prod_x * x_new / x_old
        if n_obs == 0:
            prod_w = 1.0
            prod_x = 1.0
        if na_restore and np.isnan(x[i, j]):
            res[i, j] = x[i, j]
        else:
            res[i, j] = statistic_calculation(PROD, n_obs, min_obs, 0.0, 0.0, 0.0, 0.0, prod_w * prod_x, 0.0, np.nan, False, False)
    return res


@parallel
def _roll_online(x, weights, width, min_obs, any_na, center, scale, na_restore, stat):
    res = np.empty(x.shape)
    for j in prange(x.shape[1]):
        if stat == PROD:
            _online_prod_column(x, j, weights, width, min_obs, any_na, na_restore, res)
        else:
            _online_column(x, j, weights, width, min_obs, any_na, center, scale, na_restore, stat, res)
    return res


def roll_online(x, weights, width, min_obs, any_na, stat, center = True, scale = False, na_restore = False):
    """
    O(1) per row rolling statistics, one column per thread. 
    Valid only if the last width weights are geometric, i.e. weights[-k-1] = weights[-1] * lam ** k.
    No validation is done here.
    
    :Parameters:
    ------------
    x : 2-d float array
        observations, rows are time
    weights : 1-d float array
        weights[-1] applies to the newest row of the window
    width : int
        window size
    min_obs : int
        number of valid rows required to emit a value
    any_na : 1-d bool array
        rows excluded from every column
    stat : Stat
        one of SUM, MEAN, PROD, VAR, SD, SCALE

    :Returns:
    ---------
    float array shaped as x
    """
    return _roll_online(x, weights, width, min_obs, any_na, center, scale, na_restore, int(stat))
