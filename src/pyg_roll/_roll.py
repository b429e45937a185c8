import logging
import numpy as np
import pandas as pd
from pyg_base import Dict, dictattr, is_pd, is_df, is_series, loop, df_concat
from pyg_roll._kinds import Stat, Algo
from pyg_roll._math import SQRT_EPS
from pyg_roll._decorators import get_num_threads
from pyg_roll._online import roll_online
from pyg_roll._direct import roll_direct
from pyg_roll._cov import cov_online, cov_direct, lm_cov_online, lm_cov_direct
from pyg_roll._lm import roll_lm_solve

__all__ = ['roll_sum', 'roll_prod', 'roll_mean', 'roll_var', 'roll_sd', 'roll_scale', 
           'roll_cov', 'roll_cor', 'roll_lm', 'roll_cov_', 'roll_cor_']

logger = logging.getLogger(__name__)

###############
##
## parameters
##
###############

def _width(width):
    if isinstance(width, bool) or not isinstance(width, (int, np.integer)) or width < 1:
        raise ValueError('width must be a positive integer, not %r' % (width,))
    return int(width)


def _weights(weights, width):
    """defaults to uniform weights. Longer vectors are allowed: only the last width entries matter"""
    if weights is None:
        return np.ones(width)
    weights = np.asarray(weights, dtype = np.float64)
    if len(weights.shape) != 1 or len(weights) < width:
        raise ValueError('weights must be a vector with at least width = %i entries' % width)
    if not np.isfinite(weights).all() or (weights < 0).any():
        raise ValueError('weights must be finite and non-negative')
    return np.ascontiguousarray(weights)


def _min_obs(min_obs, width):
    if min_obs is None:
        return width
    if isinstance(min_obs, bool) or not isinstance(min_obs, (int, np.integer)) or not 1 <= min_obs <= width:
        raise ValueError('min_obs must be between 1 and width = %i, not %s' % (width, min_obs))
    return int(min_obs)


def _is_geometric(weights, width):
    """
    True if the last width weights are positive with a constant ratio, i.e. weights[-k-1] == weights[-1] * lam ** k
    
    :Example:
    ---------
    >>> assert _is_geometric(0.9 ** np.arange(10)[::-1], 10)
    >>> assert _is_geometric(np.ones(5), 3)
    >>> assert not _is_geometric(np.arange(1., 6.), 5)
    """
    w = weights[len(weights) - width:]
    if not (w > 0).all():
        return False
    if width == 1:
        return True
    lam = w[-2] / w[-1]
    expected = w[-1] * lam ** np.arange(width - 1, -1, -1, dtype = np.float64)
    return bool(np.allclose(w, expected, rtol = SQRT_EPS, atol = 0))


def _algo(online, weights, width, stat, values = None):
    """
    the engine for this call: Algo.ONLINE unless it was switched off, the weights are not geometric, or a product would have to divide out a zero
    
    :Example:
    ---------
    >>> assert _algo(True, np.ones(5), 5, Stat.MEAN) == Algo.ONLINE
    >>> assert _algo(True, np.arange(1., 6.), 5, Stat.MEAN) == Algo.DIRECT
    """
    if not online:
        return Algo.DIRECT
    if not _is_geometric(weights, width):
        logger.debug('%s: the last %i weights are not geometric, using the direct algorithm', stat.name, width)
        return Algo.DIRECT
    if stat == Stat.PROD and (values == 0).any():
        logger.debug('%s: cannot divide zeros out of a rolling product, using the direct algorithm', stat.name)
        return Algo.DIRECT
    return Algo.ONLINE


_ROLL = {Algo.ONLINE: roll_online, Algo.DIRECT: roll_direct}
_COV = {Algo.ONLINE: cov_online, Algo.DIRECT: cov_direct}
_LM_COV = {Algo.ONLINE: lm_cov_online, Algo.DIRECT: lm_cov_direct}


def _any_na(complete_obs, *values):
    """rows to exclude from every column: with complete_obs, any row with a missing value in any of the values"""
    res = np.zeros(values[0].shape[0], dtype = bool)
    if complete_obs:
        for v in values:
            res |= np.isnan(v).any(axis = 1)
    return res


###############
##
## marshalling
##
###############

def _to_matrix(a):
    """float64 2-d array of the values of a. Vectors and Series become a single column"""
    values = np.asarray(a.values if is_pd(a) else a, dtype = np.float64)
    if len(values.shape) == 1:
        return values.reshape(-1, 1)
    elif len(values.shape) == 2:
        return values
    raise ValueError('expecting a vector or a matrix, got an array of shape %s' % (values.shape,))


def _from_matrix(res, a):
    if is_series(a):
        return pd.Series(res[:, 0], index = a.index, name = a.name)
    elif is_df(a):
        return pd.DataFrame(res, index = a.index, columns = a.columns)
    elif len(np.shape(a)) == 1:
        return res[:, 0]
    return res


def _labels(a, n):
    if is_df(a):
        return list(a.columns)
    elif is_series(a):
        return [a.name]
    return list(range(n))


def _check_rows(x, y):
    if x.shape[0] != y.shape[0]:
        raise ValueError('x and y must have the same number of rows, got %i and %i' % (x.shape[0], y.shape[0]))


def _roll(stat, x, width, weights, min_obs, complete_obs, na_restore, online, center = True, scale = False):
    width = _width(width)
    weights = _weights(weights, width)
    min_obs = _min_obs(min_obs, width)
    values = _to_matrix(x)
    any_na = _any_na(complete_obs, values)
    engine = _ROLL[_algo(online, weights, width, stat, values)]
    res = engine(values, weights, width, min_obs, any_na, stat, center = center, scale = scale, na_restore = na_restore)
    return _from_matrix(res, x)


###############
##
## API
##
###############

@loop(list, dict)
def roll_sum(x, width, weights = None, min_obs = None, complete_obs = False, na_restore = False, online = True):
    """
    rolling weighted sum. Missing values are skipped rather than propagated.

    :Parameters:
    ------------
    x : array, pd.Series, pd.DataFrame or list/dict of these
        timeseries, rows are time
    width : int
        size of rolling window
    weights : vector, optional
        weights[-1] is applied to the newest row, weights[-2] to the row before etc. Defaults to width ones.
    min_obs : int, optional
        minimum number of non-missing rows in the window, else nan. Defaults to width
    complete_obs : bool
        if True, a row with a nan in any column is excluded from all columns
    na_restore : bool
        if True, cells where x is nan are returned as nan rather than calculated
    online : bool
        use the O(1) recurrence when the weights allow it. If False, always recompute each window.

    :Example:
    ---------
    >>> x = np.array([1., 2., np.nan, 4.])
    >>> assert eq(roll_sum(x, 2), np.array([np.nan, 3., np.nan, np.nan]))
    >>> assert eq(roll_sum(x, 2, min_obs = 1), np.array([1., 3., 2., 4.]))
    
    :Example: exponential weights
    ---------
    >>> w = 0.9 ** np.arange(5)[::-1]
    >>> assert abs(roll_sum(np.ones(5), 5, weights = w)[-1] - w.sum()) < 1e-12
    """
    return _roll(Stat.SUM, x, width = width, weights = weights, min_obs = min_obs, complete_obs = complete_obs, na_restore = na_restore, online = online)


@loop(list, dict)
def roll_prod(x, width, weights = None, min_obs = None, complete_obs = False, na_restore = False, online = True):
    """
    rolling product of weight * value over the window. See roll_sum for parameters.
    The online algorithm divides leaving values out, so if x contains a zero the direct algorithm is used instead.

    :Example:
    ---------
    >>> assert eq(roll_prod(np.array([1., 2., 3., 4.]), 2), np.array([np.nan, 2., 6., 12.]))
    """
    return _roll(Stat.PROD, x, width = width, weights = weights, min_obs = min_obs, complete_obs = complete_obs, na_restore = na_restore, online = online)


@loop(list, dict)
def roll_mean(x, width, weights = None, min_obs = None, complete_obs = False, na_restore = False, online = True):
    """
    rolling weighted mean, sum(w * x) / sum(w) over the non-missing rows of the window. See roll_sum for parameters.

    :Example: expanding then rolling
    ---------
    >>> assert eq(roll_mean(np.array([1., 2., 3., 4., 5.]), 3, min_obs = 1), np.array([1., 1.5, 2., 3., 4.]))

    :Example: pandas
    ---------
    >>> from pyg_base import drange
    >>> ts = pd.Series(np.random.normal(0,1,100), drange(-99))
    >>> assert abs(roll_mean(ts, 10) - ts.rolling(10).mean()).max() < 1e-10
    """
    return _roll(Stat.MEAN, x, width = width, weights = weights, min_obs = min_obs, complete_obs = complete_obs, na_restore = na_restore, online = online)


@loop(list, dict)
def roll_var(x, width, weights = None, center = True, min_obs = None, complete_obs = False, na_restore = False, online = True):
    """
    rolling weighted variance. The denominator is the effective number of degrees of freedom sum(w) - sum(w**2)/sum(w),
    which for uniform weights is the usual n - 1. Needs at least two observations.

    :Parameters:
    ------------
    center : bool
        if False, the second moment is taken around zero rather than around the window mean
    
    See roll_sum for the rest.

    :Example:
    ---------
    >>> from pyg_base import drange
    >>> ts = pd.Series(np.random.normal(0,1,100), drange(-99))
    >>> assert abs(roll_var(ts, 10) - ts.rolling(10).var()).max() < 1e-10
    """
    return _roll(Stat.VAR, x, width = width, weights = weights, min_obs = min_obs, complete_obs = complete_obs, na_restore = na_restore, online = online, center = center)


@loop(list, dict)
def roll_sd(x, width, weights = None, center = True, min_obs = None, complete_obs = False, na_restore = False, online = True):
    """rolling weighted standard deviation, the square root of roll_var"""
    return _roll(Stat.SD, x, width = width, weights = weights, min_obs = min_obs, complete_obs = complete_obs, na_restore = na_restore, online = online, center = center)


@loop(list, dict)
def roll_scale(x, width, weights = None, center = True, scale = True, min_obs = None, complete_obs = False, na_restore = False, online = True):
    """
    standardizes the most recent valid value of each window: (x - mean) / sd.
    center = False drops the mean, scale = False drops the division.
    When scaling, windows whose standard deviation is indistinguishable from zero are nan.

    :Example:
    ---------
    >>> x = np.array([1., 2., 3., 4.])
    >>> assert eq(roll_scale(x, 4, min_obs = 2), np.array([np.nan, 2**-0.5, 1., 1.5 / np.sqrt(5/3)]))
    """
    return _roll(Stat.SCALE, x, width = width, weights = weights, min_obs = min_obs, complete_obs = complete_obs, na_restore = na_restore, online = online, center = center, scale = scale)


def roll_cov_(x, width, y = None, weights = None, center = True, scale = False, min_obs = None, complete_obs = True, na_restore = False, online = True, join = 'outer'):
    """
    This calculates a full rolling covariance matrix as a timeseries. 
    
    :Returns:
    ---------
        a dict with:
            - data: (x columns) x (y columns) x t covariance tensor
            - index: timeseries index
            - columns: columns of x
            - y_columns: columns of y (same as columns if y is None)

    See roll_cov for full details.
    """
    arr = df_concat(x, join = join) if isinstance(x, (list, dict)) else x
    width = _width(width)
    weights = _weights(weights, width)
    min_obs = _min_obs(min_obs, width)
    xs = _to_matrix(arr)
    if y is None:
        any_na = _any_na(complete_obs, xs)
        ys = None
        other = arr
    else:
        other = df_concat(y, join = join) if isinstance(y, (list, dict)) else y
        ys = _to_matrix(other)
        _check_rows(xs, ys)
        any_na = _any_na(complete_obs, xs, ys)
    engine = _COV[_algo(online, weights, width, Stat.COV)]
    data = engine(xs, ys, weights, width, min_obs, any_na, center = center, scale = scale, na_restore = na_restore)
    index = arr.index if is_pd(arr) else other.index if is_pd(other) else None
    return dictattr(data = data, index = index, columns = _labels(arr, xs.shape[1]), y_columns = _labels(other, xs.shape[1] if ys is None else ys.shape[1]))

roll_cov_.output = ['data', 'index', 'columns', 'y_columns']


def roll_cov(x, width, y = None, weights = None, center = True, scale = False, min_obs = None, complete_obs = True, na_restore = False, online = True, join = 'outer'):
    """
    rolling covariance tensor of the columns of x against themselves, or against the columns of y.

    :Parameters:
    ----------
    x : np.array or a pd.DataFrame (or a list/dict of timeseries, joined into one)
        multi-variable timeseries
    width : int
        size of rolling window
    y : np.array or a pd.DataFrame, optional
        if provided, the columns of x are paired with the columns of y. Must have as many rows as x.
    center : bool
        subtract window means
    scale : bool
        return correlations instead of covariances
    complete_obs : bool
        if True (the default), a row with any nan in x or y is excluded from every pair.
        Otherwise each pair uses the rows where both its columns are present.

    :Returns:
    -------
    covariance as an n x m x t np.array, symmetric in the first two axes when y is None
        
    :Example:
    ---------
    >>> a = np.random.normal(0,1,(1000, 3))
    >>> cov = roll_cov(a, 250)
    >>> assert cov.shape == (3, 3, 1000)
    >>> assert abs(cov[:, :, -1] - np.cov(a[-250:].T)).max() < 1e-10
    """
    return roll_cov_(x, width, y = y, weights = weights, center = center, scale = scale, min_obs = min_obs, complete_obs = complete_obs, na_restore = na_restore, online = online, join = join).get('data')


def roll_cor_(x, width, y = None, weights = None, center = True, scale = True, min_obs = None, complete_obs = True, na_restore = False, online = True, join = 'outer'):
    """as roll_cov_ but with scale = True: a dict of correlation tensor, index and columns"""
    return roll_cov_(x, width, y = y, weights = weights, center = center, scale = scale, min_obs = min_obs, complete_obs = complete_obs, na_restore = na_restore, online = online, join = join)

roll_cor_.output = roll_cov_.output


def roll_cor(x, width, y = None, weights = None, center = True, scale = True, min_obs = None, complete_obs = True, na_restore = False, online = True, join = 'outer'):
    """
    rolling correlation tensor. See roll_cov.

    :Example:
    ---------
    >>> a = np.random.normal(0,1,(1000, 3))
    >>> cor = roll_cor(a, 250)
    >>> assert abs(cor[:, :, -1] - np.corrcoef(a[-250:].T)).max() < 1e-10
    """
    return roll_cor_(x, width, y = y, weights = weights, center = center, scale = scale, min_obs = min_obs, complete_obs = complete_obs, na_restore = na_restore, online = online, join = join).get('data')


def _roll_lm1(xs, ys, weights, width, min_obs, complete_obs, intercept, na_restore, online):
    any_na = _any_na(complete_obs, xs, ys)
    z = np.concatenate([xs, ys], axis = 1)
    engine = _LM_COV[_algo(online, weights, width, Stat.LM)]
    cov, mean, n_obs, sum_w = engine(z, weights, width, min_obs, any_na, intercept = intercept, na_restore = na_restore)
    logger.debug('solving %i regressions on %i threads', z.shape[0], get_num_threads())
    return roll_lm_solve(cov, n_obs, sum_w, mean, intercept = intercept)


def roll_lm(x, y, width, weights = None, intercept = True, min_obs = None, complete_obs = True, na_restore = False, online = True):
    """
    rolling weighted least squares regression of y on the columns of x.

    :Parameters:
    ------------
    x : array, pd.Series or pd.DataFrame
        predictors, rows are time
    y : array, pd.Series or pd.DataFrame
        response. If y has several columns, each is regressed separately and a dict keyed by column is returned.
    width : int
        size of rolling window
    intercept : bool
        fit a constant term. It is reported as the first coefficient
    
    complete_obs : bool
        if True (the default), a row with a nan in x or in the response is left out of that response's regression.
        Each column of y is screened on its own, so a nan in one response does not remove the row from the others.
    
    See roll_sum for weights, min_obs, na_restore and online.
    
    :Returns:
    ---------
    Dict with 
        - coefficients: t x p, intercept first
        - r_squared: t
        - std_error: t x p
    
    A window whose predictors are collinear, or that holds fewer valid rows than coefficients, is nan throughout.
    If x or y are pandas, the results are a DataFrame/Series on the same index.
    
    :Example:
    ---------
    >>> x = np.random.normal(0,1,(100,2))
    >>> y = 1 + x.dot([2., 3.]) + np.random.normal(0,0.1,100)
    >>> res = roll_lm(x, y, 50)
    >>> assert abs(res.coefficients[-1] - np.array([1, 2, 3])).max() < 0.1
    """
    width = _width(width)
    weights = _weights(weights, width)
    min_obs = _min_obs(min_obs, width)
    xs = _to_matrix(x)
    ys = _to_matrix(y)
    _check_rows(xs, ys)
    if xs.shape[1] == 0:
        raise ValueError('roll_lm needs at least one predictor column')
    pandas = is_pd(x) or is_pd(y)
    index = x.index if is_pd(x) else y.index if is_pd(y) else None
    columns = (['intercept'] if intercept else []) + _labels(x, xs.shape[1])
    res = {}
    for label, c in zip(_labels(y, ys.shape[1]), range(ys.shape[1])):
        lm = _roll_lm1(xs, ys[:, c:c+1], weights, width, min_obs, complete_obs, intercept, na_restore, online)
        if pandas:
            lm = Dict(coefficients = pd.DataFrame(lm.coefficients, index = index, columns = columns),
                      r_squared = pd.Series(lm.r_squared, index = index, name = label),
                      std_error = pd.DataFrame(lm.std_error, index = index, columns = columns))
        res[label] = lm
    if ys.shape[1] == 1:
        return res[list(res)[0]]
    return Dict(res)
