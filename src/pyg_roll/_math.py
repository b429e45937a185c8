import numpy as np
from pyg_roll._decorators import compiled
from pyg_roll._kinds import SUM, MEAN, PROD, VAR, SD, SCALE

__all__ = ['EPS', 'SQRT_EPS', 'decay_factor', 'effective_df', 'variance_calculation', 'scale_calculation', 
           'covariance_calculation', 'statistic_calculation']

EPS = float(np.finfo(np.float64).eps)
SQRT_EPS = float(np.sqrt(EPS))

@compiled
def decay_factor(weights, width):
    """
    the constant ratio between consecutive weights. Weights are aligned to the end of the vector, so weights[-1] belongs to the newest row.
    A window of width 1 has no ratio to speak of and the recurrence then multiplies by weights[-1] itself.
    """
    n = len(weights)
    if width > 1:
        return weights[n - 2] / weights[n - 1]
    else:
        return weights[n - 1]


@compiled
def effective_df(sum_w, sumsq_w):
    """weighted analogue of (n-1): for uniform weights sum_w - sumsq_w/sum_w = n - 1"""
    return sum_w - sumsq_w / sum_w


@compiled
def variance_calculation(n_obs, min_obs, sum_w, sumsq_w, sumsq_x):
    if n_obs > 1 and n_obs >= min_obs:
        return sumsq_x / effective_df(sum_w, sumsq_w)
    else:
        return np.nan


@compiled
def scale_calculation(n_obs, min_obs, sum_w, sumsq_w, sumsq_x, mean_x, x_last, center, scale):
    """
    standardizes x_last, the most recent valid value in the window
    
    :Parameters:
    ------------
    center: bool
        subtract the window mean
    scale: bool
        divide by the window standard deviation. If the standard deviation is indistinguishable from zero we return nan.
    """
    if n_obs < min_obs:
        return np.nan
    if scale:
        if n_obs <= 1:
            return np.nan
        sd = np.sqrt(sumsq_x / effective_df(sum_w, sumsq_w))
        if not sd > SQRT_EPS:
            return np.nan
        if center:
            return (x_last - mean_x) / sd
        else:
            return x_last / sd
    elif center:
        return x_last - mean_x
    else:
        return x_last


@compiled
def covariance_calculation(n_obs, min_obs, sum_w, sumsq_w, sumsq_x, sumsq_y, sumsq_xy, scale, raw):
    """
    final value of a pair statistic:
    
    - raw: the co-moment sumsq_xy itself, used by the regression solver
    - scale: correlation, nan if either standard deviation is zero
    - otherwise: covariance, dividing by the effective degrees of freedom
    """
    if n_obs <= 1 or n_obs < min_obs:
        return np.nan
    if raw:
        return sumsq_xy
    if scale:
        sd_x = np.sqrt(sumsq_x)
        sd_y = np.sqrt(sumsq_y)
        if not (sd_x > SQRT_EPS and sd_y > SQRT_EPS):
            return np.nan
        return sumsq_xy / (sd_x * sd_y)
    return sumsq_xy / effective_df(sum_w, sumsq_w)


@compiled
def statistic_calculation(stat, n_obs, min_obs, sum_w, sum_x, sumsq_w, sumsq_x, prod, mean_x, x_last, center, scale):
    """
    shared emission policy of both the online and the direct engine. 
    prod is only used by PROD; sumsq_x, mean_x and x_last only by VAR, SD and SCALE.
    """
    if stat == SCALE:
        return scale_calculation(n_obs, min_obs, sum_w, sumsq_w, sumsq_x, mean_x, x_last, center, scale)
    if stat == VAR:
        return variance_calculation(n_obs, min_obs, sum_w, sumsq_w, sumsq_x)
    if stat == SD:
        return np.sqrt(variance_calculation(n_obs, min_obs, sum_w, sumsq_w, sumsq_x))
    if n_obs < min_obs:
        return np.nan
    if stat == SUM:
        return sum_x
    elif stat == MEAN:
        return sum_x / sum_w
    elif stat == PROD:
        return prod
    return np.nan
