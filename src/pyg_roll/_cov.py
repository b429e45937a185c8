import numpy as np
from numba import prange
from pyg_roll._decorators import compiled, parallel
from pyg_roll._math import decay_factor, covariance_calculation
from pyg_roll._index import tri_count, cell_tri, cell_3d
from pyg_roll._accumulator import new_accumulator, accumulate, anchor, two_sum, SUM_W, SUMSQ_W, SUMSQ_X, SUMSQ_Y, SUMSQ_XY, MEAN_X

__all__ = ['cov_online', 'cov_direct', 'lm_cov_online', 'lm_cov_direct']

###############
##
## pair helpers
##
###############

@compiled
def _pair_valid(x, j, y, k, any_na, i):
    return not any_na[i] and not np.isnan(x[i, j]) and not np.isnan(y[i, k])


@compiled
def _pair_restore(x, j, y, k, i):
    """the value passed through when na_restore is set and either member of the pair is missing"""
    if np.isnan(x[i, j]):
        return x[i, j]
    return y[i, k]


def _no_record():
    return np.empty((0, 0)), np.empty(0), np.empty(0)


###############
##
## online
##
###############

@compiled
def _online_pair(x, j, y, k, weights, width, min_obs, any_na, center, scale, raw, na_restore, res, mean, n_obs_out, sum_w_out, record_mean, record_count):
    """
    runs the recurrence for the pair (x[:, j], y[:, k]) and writes res[j, k, :]. 
    A row contributes only if neither value is missing and the row is not excluded.
    If record_mean, the running mean of x[:, j] goes to mean[:, j]. If record_count, n_obs and sum_w go to n_obs_out and sum_w_out.
    """
    n = len(weights)
    lam = decay_factor(weights, width)
    w_last = weights[n - 1]
    w_first = weights[n - width]
    acc = new_accumulator()
    n_obs = 0
    for i in range(x.shape[0]):
        w_new = 0.0
        x_new = 0.0
        y_new = 0.0
        if _pair_valid(x, j, y, k, any_na, i):
            n_obs += 1
            w_new = w_last
            x_new = x[i, j]
            y_new = y[i, k]
        w_old = 0.0
        x_old = 0.0
        y_old = 0.0
        if i >= width and _pair_valid(x, j, y, k, any_na, i - width):
            n_obs -= 1
            w_old = w_first
            x_old = x[i - width, j]
            y_old = y[i - width, k]
        accumulate(acc, n_obs, lam, w_new, x_new, y_new, w_old, x_old, y_old, center, True, scale)
        if (i + 1) % width == 0:
            anchor(acc, x, j, y, k, any_na, i, weights, width, center, True, scale)
        if record_count:
            n_obs_out[i] = n_obs
            sum_w_out[i] = acc[SUM_W]
        if record_mean:
            mean[i, j] = acc[MEAN_X]
        if na_restore and (np.isnan(x[i, j]) or np.isnan(y[i, k])):
            res[j, k, i] = _pair_restore(x, j, y, k, i)
        else:
            res[j, k, i] = covariance_calculation(n_obs, min_obs, acc[SUM_W], acc[SUMSQ_W], acc[SUMSQ_X], acc[SUMSQ_Y], acc[SUMSQ_XY], scale, raw)
    return res


@parallel
def _cov_online(x, y, symmetric, weights, width, min_obs, any_na, center, scale, raw, na_restore, mean, n_obs_out, sum_w_out, record):
    n_rows = x.shape[0]
    n_cols_x = x.shape[1]
    n_cols_y = y.shape[1]
    res = np.empty((n_cols_x, n_cols_y, n_rows))
    for j in prange(n_cols_x):
        upper = j + 1 if symmetric else n_cols_y
        for k in range(upper):
            record_mean = record and j == k
            record_count = record and j == n_cols_x - 1 and k == n_cols_x - 1
            _online_pair(x, j, y, k, weights, width, min_obs, any_na, center, scale, raw, na_restore, res, mean, n_obs_out, sum_w_out, record_mean, record_count)
            if symmetric and k < j:
                res[k, j, :] = res[j, k, :]
    return res


def cov_online(x, y, weights, width, min_obs, any_na, center = True, scale = False, na_restore = False):
    """
    rolling covariance (or, if scale, correlation) tensor using the online recurrence. 
    If y is None the tensor of x against itself is built from the lower triangle and mirrored.
    
    :Returns:
    ---------
    float array of shape (x columns, y columns, rows)
    """
    symmetric = y is None
    mean, n_obs, sum_w = _no_record()
    return _cov_online(x, x if symmetric else y, symmetric, weights, width, min_obs, any_na, center, scale, False, na_restore, mean, n_obs, sum_w, False)


def lm_cov_online(z, weights, width, min_obs, any_na, intercept = True, na_restore = False):
    """
    the raw co-moment tensor of z = [predictors, response] consumed by roll_lm_solve. 
    Also returns the column means (zero without intercept), the number of valid rows and the total weight, all per row.
    """
    n_rows, n_cols = z.shape
    mean = np.zeros((n_rows, n_cols))
    n_obs = np.zeros(n_rows)
    sum_w = np.zeros(n_rows)
    cov = _cov_online(z, z, True, weights, width, min_obs, any_na, intercept, False, True, na_restore, mean, n_obs, sum_w, True)
    return cov, mean, n_obs, sum_w


###############
##
## direct
##
###############

@compiled
def _direct_pair_cell(x, j, y, k, i, weights, width, any_na, center, scale):
    """two passes over the window: first the weights and means (compensated sums), then the co-moments around the means"""
    n = len(weights)
    n_obs = 0
    sum_w = 0.0
    sum_x = 0.0
    sum_y = 0.0
    sumsq_w = 0.0
    err_w = 0.0
    err_x = 0.0
    err_y = 0.0
    count = 0
    while count < width and i >= count:
        row = i - count
        if _pair_valid(x, j, y, k, any_na, row):
            w = weights[n - count - 1]
            n_obs += 1
            sum_w, e = two_sum(sum_w, w)
            err_w += e
            sum_x, e = two_sum(sum_x, w * x[row, j])
            err_x += e
            sum_y, e = two_sum(sum_y, w * y[row, k])
            err_y += e
            sumsq_w += w * w
        count += 1
    sum_w += err_w
    sum_x += err_x
    sum_y += err_y
    mean_x = 0.0
    mean_y = 0.0
    if center and n_obs > 0:
        mean_x = sum_x / sum_w
        mean_y = sum_y / sum_w
    sumsq_x = 0.0
    sumsq_y = 0.0
    sumsq_xy = 0.0
    count = 0
    while count < width and i >= count:
        row = i - count
        if _pair_valid(x, j, y, k, any_na, row):
            w = weights[n - count - 1]
            dx = x[row, j] - mean_x
            dy = y[row, k] - mean_y
            sumsq_xy += w * dx * dy
            if scale:
                sumsq_x += w * dx * dx
                sumsq_y += w * dy * dy
        count += 1
    return n_obs, sum_w, sumsq_w, sumsq_x, sumsq_y, sumsq_xy, mean_x


@parallel
def _cov_direct(x, y, symmetric, weights, width, min_obs, any_na, center, scale, raw, na_restore, mean, n_obs_out, sum_w_out, record):
    n_rows = x.shape[0]
    n_cols_x = x.shape[1]
    n_cols_y = y.shape[1]
    res = np.empty((n_cols_x, n_cols_y, n_rows))
    n_cells = n_rows * tri_count(n_cols_x) if symmetric else n_rows * n_cols_x * n_cols_y
    for z in prange(n_cells):
        if symmetric:
            i, j, k = cell_tri(z, n_cols_x)
        else:
            i, j, k = cell_3d(z, n_rows, n_cols_y)
        n_obs, sum_w, sumsq_w, sumsq_x, sumsq_y, sumsq_xy, mean_x = _direct_pair_cell(x, j, y, k, i, weights, width, any_na, center, scale)
        if record:
            if j == k:
                mean[i, j] = mean_x
                if j == n_cols_x - 1:
                    n_obs_out[i] = n_obs
                    sum_w_out[i] = sum_w
        if na_restore and (np.isnan(x[i, j]) or np.isnan(y[i, k])):
            value = _pair_restore(x, j, y, k, i)
        else:
            value = covariance_calculation(n_obs, min_obs, sum_w, sumsq_w, sumsq_x, sumsq_y, sumsq_xy, scale, raw)
        res[j, k, i] = value
        if symmetric:
            res[k, j, i] = value
    return res


def cov_direct(x, y, weights, width, min_obs, any_na, center = True, scale = False, na_restore = False):
    """
    as cov_online but recomputing every (row, column, column) cell from the window, for arbitrary weights
    """
    symmetric = y is None
    mean, n_obs, sum_w = _no_record()
    return _cov_direct(x, x if symmetric else y, symmetric, weights, width, min_obs, any_na, center, scale, False, na_restore, mean, n_obs, sum_w, False)


def lm_cov_direct(z, weights, width, min_obs, any_na, intercept = True, na_restore = False):
    """as lm_cov_online, for arbitrary weights"""
    n_rows, n_cols = z.shape
    mean = np.zeros((n_rows, n_cols))
    n_obs = np.zeros(n_rows)
    sum_w = np.zeros(n_rows)
    cov = _cov_direct(z, z, True, weights, width, min_obs, any_na, intercept, False, True, na_restore, mean, n_obs, sum_w, True)
    return cov, mean, n_obs, sum_w
