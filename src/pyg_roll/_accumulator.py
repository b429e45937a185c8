"""
The running state of an exponentially weighted window, held as a flat float64 vector so that compiled kernels can allocate one per column (or column pair) and pass it around.

Every slot obeys the same update: acc = lambda * acc + contribution(new) - lambda * contribution(old)
In the expanding part of the series there is no old row and callers pass w_old = 0.

Precision: each summed slot is carried as an unevaluated pair hi + lo (acc[slot] and acc[slot + N_SLOTS]), about 106 bits.
The decay uses an error-free product and the add/remove uses an error-free sum, so a large value leaving the window leaves no offset behind.
acc[slot] is always the correctly rounded float64 value of the pair and is what readers use.
Co-moments are accumulated around the running mean (Welford style), and anchor() rebuilds the state from the window itself so that
whatever rounding the means contribute cannot build up over more than width rows.
Results are reproducible bit for bit: each column is updated sequentially in row order and the order of operations is fixed.
"""
import numpy as np
from pyg_roll._decorators import compiled

__all__ = ['SUM_W', 'SUM_X', 'SUM_Y', 'SUMSQ_W', 'SUMSQ_X', 'SUMSQ_Y', 'SUMSQ_XY', 'MEAN_X', 'MEAN_Y', 'MEAN_PREV_X', 'MEAN_PREV_Y', 'N_SLOTS',
           'new_accumulator', 'accumulate', 'anchor', 'two_sum']

SUM_W = 0
SUM_X = 1
SUM_Y = 2
SUMSQ_W = 3
SUMSQ_X = 4
SUMSQ_Y = 5
SUMSQ_XY = 6
MEAN_X = 7
MEAN_Y = 8
MEAN_PREV_X = 9
MEAN_PREV_Y = 10
N_SLOTS = 11

_SPLITTER = 134217729.0 ## 2**27 + 1

###############
##
## error free transformations
##
###############

@compiled
def two_sum(a, b):
    """returns s, e with s = fl(a + b) and s + e == a + b exactly"""
    s = a + b
    bb = s - a
    e = (a - (s - bb)) + (b - bb)
    return s, e


@compiled
def _split(a):
    c = _SPLITTER * a
    hi = c - (c - a)
    return hi, a - hi


@compiled
def _two_prod(a, b):
    """returns p, e with p = fl(a * b) and p + e == a * b exactly (Dekker)"""
    p = a * b
    a_hi, a_lo = _split(a)
    b_hi, b_lo = _split(b)
    e = ((a_hi * b_hi - p) + a_hi * b_lo + a_lo * b_hi) + a_lo * b_lo
    return p, e


@compiled
def _decay_add(acc, slot, lam, w_new, v_new, w_old, v_old):
    """acc[slot] = lam * acc[slot] + w_new * v_new - lam * w_old * v_old, in double-float"""
    hi, lo = _two_prod(lam, acc[slot])
    lo += lam * acc[slot + N_SLOTS]
    p, e = _two_prod(w_new, v_new)
    hi, s = two_sum(hi, p)
    lo += s + e
    p, e = _two_prod(lam * w_old, v_old)
    hi, s = two_sum(hi, -p)
    lo += s - e
    hi, lo = two_sum(hi, lo)
    acc[slot] = hi
    acc[slot + N_SLOTS] = lo


###############
##
## accumulator
##
###############

@compiled
def new_accumulator():
    return np.zeros(2 * N_SLOTS)


@compiled
def accumulate(acc, n_obs, lam, w_new, x_new, y_new, w_old, x_old, y_old, center, cross, own):
    """
    advances the accumulator by one row.

    :Parameters:
    ------------
    acc: float64 array of 2 * N_SLOTS
        updated in place
    n_obs: int
        number of valid rows in the window after this row has been added (and the old row removed)
    lam: float
        decay factor
    w_new, x_new, y_new: float
        weight and values of the entering row. An invalid row enters with zero weight and zero values
    w_old, x_old, y_old: float
        weight and values of the leaving row, as they were weighted before the decay of this step. Zero if there is nothing to remove
    center: bool
        track the running means. When False the means stay at zero and co-moments are raw
    cross: bool
        track the co-moment of x and y
    own: bool
        track the co-moments of x with itself and of y with itself

    :Example:
    ---------
    >>> acc = new_accumulator()
    >>> for n_obs, x in enumerate([1., 2., 3.]):
    >>>     accumulate(acc, n_obs + 1, 1., 1., x, x, 0., 0., 0., True, False, True)
    >>> assert acc[MEAN_X] == 2 and acc[SUMSQ_X] == 2
    """
    _decay_add(acc, SUM_W, lam, w_new, 1.0, w_old, 1.0)
    _decay_add(acc, SUM_X, lam, w_new, x_new, w_old, x_old)
    _decay_add(acc, SUM_Y, lam, w_new, y_new, w_old, y_old)
    _decay_add(acc, SUMSQ_W, lam * lam, w_new, w_new, w_old, w_old)

    if n_obs == 0: ## empty window: drop rounding residue rather than carry it forward
        acc[:] = 0.0
        return acc

    if center:
        acc[MEAN_PREV_X] = acc[MEAN_X]
        acc[MEAN_PREV_Y] = acc[MEAN_Y]
        acc[MEAN_X] = acc[SUM_X] / acc[SUM_W]
        acc[MEAN_Y] = acc[SUM_Y] / acc[SUM_W]

    mean_x = acc[MEAN_X]
    mean_y = acc[MEAN_Y]
    prev_x = acc[MEAN_PREV_X]
    prev_y = acc[MEAN_PREV_Y]
    if cross:
        _decay_add(acc, SUMSQ_XY, lam, w_new, (x_new - mean_x) * (y_new - prev_y), w_old, (x_old - mean_x) * (y_old - prev_y))
    if own:
        _decay_add(acc, SUMSQ_X, lam, w_new, (x_new - mean_x) * (x_new - prev_x), w_old, (x_old - mean_x) * (x_old - prev_x))
        _decay_add(acc, SUMSQ_Y, lam, w_new, (y_new - mean_y) * (y_new - prev_y), w_old, (y_old - mean_y) * (y_old - prev_y))
    return acc


@compiled
def anchor(acc, x, j, y, k, any_na, i, weights, width, center, cross, own):
    """
    rebuilds the accumulator for the window ending at row i from the rows themselves: sums first, then co-moments around the means.
    The online kernels call this once every width rows, which bounds how long rounding in the means can persist. Amortized cost stays O(1) per row.
    A row counts if it is not excluded and neither x[:, j] nor y[:, k] is missing.
    """
    acc[:] = 0.0
    n = len(weights)
    n_obs = 0
    count = 0
    while count < width and i >= count:
        row = i - count
        if not any_na[row] and not np.isnan(x[row, j]) and not np.isnan(y[row, k]):
            w = weights[n - count - 1]
            n_obs += 1
            _decay_add(acc, SUM_W, 1.0, w, 1.0, 0.0, 0.0)
            _decay_add(acc, SUM_X, 1.0, w, x[row, j], 0.0, 0.0)
            _decay_add(acc, SUM_Y, 1.0, w, y[row, k], 0.0, 0.0)
            _decay_add(acc, SUMSQ_W, 1.0, w, w, 0.0, 0.0)
        count += 1
    if n_obs == 0:
        return acc
    if center:
        acc[MEAN_X] = acc[SUM_X] / acc[SUM_W]
        acc[MEAN_Y] = acc[SUM_Y] / acc[SUM_W]
        acc[MEAN_PREV_X] = acc[MEAN_X]
        acc[MEAN_PREV_Y] = acc[MEAN_Y]
    mean_x = acc[MEAN_X]
    mean_y = acc[MEAN_Y]
    count = 0
    while count < width and i >= count:
        row = i - count
        if not any_na[row] and not np.isnan(x[row, j]) and not np.isnan(y[row, k]):
            w = weights[n - count - 1]
            dx = x[row, j] - mean_x
            dy = y[row, k] - mean_y
            if cross:
                _decay_add(acc, SUMSQ_XY, 1.0, w, dx * dy, 0.0, 0.0)
            if own:
                _decay_add(acc, SUMSQ_X, 1.0, w, dx * dx, 0.0, 0.0)
                _decay_add(acc, SUMSQ_Y, 1.0, w, dy * dy, 0.0, 0.0)
        count += 1
    return acc
