import numpy as np
from pyg_roll._decorators import compiled

__all__ = ['tri_count', 'lower_triangle', 'cell_2d', 'cell_tri', 'cell_3d']

###############
##
## flattened index arithmetic
##
###############

@compiled
def tri_count(n):
    """number of pairs (j, k) with 0 <= k <= j < n"""
    return n * (n + 1) // 2


@compiled
def lower_triangle(z, n):
    """
    inverse of the column-major enumeration of the lower triangle of an n x n matrix.
    z runs over 0...tri_count(n)-1 and returns (j, k) with j >= k, ordered by k first:
    
    :Example:
    ---------
    >>> assert [lower_triangle(z, 3) for z in range(6)] == [(0,0), (1,0), (2,0), (1,1), (2,1), (2,2)]
    """
    k = n - int(np.floor((np.sqrt(4.0 * n * (n + 1) - (7 + 8 * z)) - 1) / 2)) - 1
    j = z - n * k + k * (k + 1) // 2
    return j, k


@compiled
def cell_2d(z, n_cols):
    """flat index to (row, col), row-major"""
    return z // n_cols, z % n_cols


@compiled
def cell_tri(z, n_cols):
    """flat index to (row, col_a, col_b) with col_a >= col_b, for a self-covariance over n_cols columns"""
    n_unique = tri_count(n_cols)
    i = z // n_unique
    j, k = lower_triangle(z % n_unique, n_cols)
    return i, j, k


@compiled
def cell_3d(z, n_rows, n_cols_y):
    """flat index to (row, col_x, col_y) for a cross-covariance, rows vary fastest"""
    i = z % n_rows
    j = z // (n_cols_y * n_rows)
    k = (z // n_rows) % n_cols_y
    return i, j, k
