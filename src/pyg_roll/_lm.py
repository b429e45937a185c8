import numpy as np
from scipy.linalg import get_lapack_funcs
from pyg_base import Dict
from pyg_roll._decorators import apply_along_first_axis
from pyg_roll._math import EPS, SQRT_EPS

__all__ = ['roll_lm_solve']

###############
##
## exact linear algebra
##
###############

def _lu_factor(a):
    """
    LU factorization of a, or None if a is singular to working precision.
    We refuse to fall back on a least-squares answer: an exactly singular pivot or a reciprocal condition number below eps means no solution.
    """
    getrf, gecon = get_lapack_funcs(('getrf', 'gecon'), (a,))
    lu, piv, info = getrf(a)
    if info != 0:
        return None
    rcond, info = gecon(lu, np.linalg.norm(a, 1), norm = '1')
    if info != 0 or not rcond >= EPS:
        return None
    return lu, piv


def _lu_solve(lu_piv, b):
    lu, piv = lu_piv
    getrs, = get_lapack_funcs(('getrs',), (lu,))
    x, info = getrs(lu, piv, b)
    return None if info != 0 else x


def _lu_inverse(lu_piv):
    lu, piv = lu_piv
    getri, = get_lapack_funcs(('getri',), (lu,))
    inv, info = getri(lu, piv)
    return None if info != 0 else inv


###############
##
## per slice regression
##
###############

def _lm_slice(sigma, n_obs, sum_w, mean, intercept):
    """
    solves one time slice. sigma is the co-moment matrix of [predictors, response], mean the column means.
    The number of coefficients p includes the intercept when fitted.
    """
    m = sigma.shape[0]
    p = m if intercept else m - 1
    coefficients = np.full(p, np.nan)
    std_error = np.full(p, np.nan)
    res = Dict(coefficients = coefficients, r_squared = np.nan, std_error = std_error)
    if np.isnan(sigma).any():
        return res
    A = sigma[:-1, :-1]
    b = sigma[:-1, -1]
    lu = _lu_factor(A)
    if lu is None or n_obs < p:
        return res
    coef = _lu_solve(lu, b)
    if coef is None:
        return res
    mean_x = mean[:-1]
    if intercept:
        coefficients[0] = mean[-1] - mean_x.dot(coef)
        coefficients[1:] = coef
    else:
        coefficients[:] = coef

    var_y = sigma[-1, -1]
    if var_y < 0 or np.sqrt(var_y) <= SQRT_EPS:
        r_squared = np.nan
    else:
        r_squared = coef.dot(A).dot(coef) / var_y
    res['r_squared'] = r_squared

    A_inv = _lu_inverse(lu)
    df_resid = n_obs - p
    if A_inv is not None and df_resid > 0:
        var_resid = (1 - r_squared) * var_y / df_resid
        if intercept:
            std_error[0] = np.sqrt(var_resid * (1 / sum_w + mean_x.dot(A_inv).dot(mean_x)))
            std_error[1:] = np.sqrt(var_resid * np.diag(A_inv))
        else:
            std_error[:] = np.sqrt(var_resid * np.diag(A_inv))
    return res


_lm_slices = apply_along_first_axis(_lm_slice, base_shape = 2)


def roll_lm_solve(cov, n_obs, sum_w, mean, intercept = True):
    """
    Solves the normal equations once per row of a rolling co-moment tensor. Slices are independent and solved on a thread pool.
    Any slice that contains a nan, is singular or has fewer valid rows than coefficients returns nan throughout.
    
    :Parameters:
    ------------
    cov : float array (m, m, rows)
        raw co-moments of [predictors, response], as returned by lm_cov_online/lm_cov_direct
    n_obs : float array (rows,)
        valid rows in each window
    sum_w : float array (rows,)
        total weight in each window
    mean : float array (rows, m)
        window means, zero if no intercept
    intercept : bool
        if True, the first coefficient is the intercept
    
    :Returns:
    ---------
    Dict with coefficients (rows, p), r_squared (rows,) and std_error (rows, p)
    """
    n_rows = cov.shape[-1]
    p = cov.shape[0] if intercept else cov.shape[0] - 1
    if n_rows == 0:
        return Dict(coefficients = np.empty((0, p)), r_squared = np.empty(0), std_error = np.empty((0, p)))
    return _lm_slices(np.moveaxis(cov, -1, 0), n_obs, sum_w, mean, intercept)
