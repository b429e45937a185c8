from pyg_roll import compiled, apply_along_first_axis, get_num_threads, set_num_threads, roll_var, roll_cov
from pyg_base import getargspec, Dict
import numpy as np


def test_roll_compiled():
    def function(a, b):
        return a + b
    f = compiled(function)
    assert f.fullargspec == getargspec(function)
    assert f(1,2) == 3


def test_roll_compiled_divides_by_zero_like_numpy():
    def ratio(a, b):
        return a / b
    f = compiled(ratio)
    assert np.isnan(f(0., 0.))
    assert f(1., 0.) == np.inf


def _total(row):
    return row.sum()


def test_apply_along_first_axis_base_shape():
    vector = np.array([1,2,3])
    mtrx = np.array([[1,2], [3,4], [5,6]])
    f1 = apply_along_first_axis(_total, base_shape = 1)
    np.testing.assert_array_equal(f1(mtrx), np.array([3, 7, 11]))
    assert f1(vector) == 6
    f2 = apply_along_first_axis(_total, base_shape = 2)
    assert f2(mtrx) == 21


def test_apply_along_first_axis_stacks_dicts_and_broadcasts_other_args():
    def f(row, shift, scale = 1):
        return Dict(total = scale * (row.sum() + shift), top = row.max())
    mtrx = np.arange(12.).reshape(4, 3)
    shift = np.array([0., 1., 2., 3.])
    res = apply_along_first_axis(f, workers = 1)(mtrx, shift, scale = 2)
    assert isinstance(res, Dict)
    np.testing.assert_array_equal(res.total, 2 * (mtrx.sum(axis = 1) + shift))
    np.testing.assert_array_equal(res.top, mtrx.max(axis = 1))


def test_apply_along_first_axis_threads_match_sequential():
    mtrx = np.random.normal(0, 1, (50, 4, 4))
    f = lambda m: np.linalg.det(m)
    seq = apply_along_first_axis(f, base_shape = 2, workers = 1)(mtrx)
    par = apply_along_first_axis(f, base_shape = 2, workers = 4)(mtrx)
    np.testing.assert_array_equal(seq, par)


def test_thread_count_does_not_change_results():
    np.random.seed(1)
    a = np.random.normal(0, 1, (500, 6))
    a[a > 1.5] = np.nan
    n = get_num_threads()
    many = roll_var(a, 20, min_obs = 2), roll_cov(a, 20, complete_obs = False, min_obs = 2)
    try:
        set_num_threads(1)
        assert get_num_threads() == 1
        one = roll_var(a, 20, min_obs = 2), roll_cov(a, 20, complete_obs = False, min_obs = 2)
    finally:
        set_num_threads(n)
    np.testing.assert_array_equal(many[0], one[0])
    np.testing.assert_array_equal(many[1], one[1])
