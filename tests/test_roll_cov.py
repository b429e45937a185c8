from pyg_roll import roll_cov, roll_cor, roll_cov_, roll_cor_, cov_online, cov_direct
from pyg_base import drange
import pandas as pd
import numpy as np
import pytest

def _data(n = 300, m = 4, seed = 0, missing = 0.1):
    np.random.seed(seed)
    a = np.random.normal(0, 1, (n, m)).dot(np.random.normal(0, 1, (m, m)))
    a[np.random.uniform(0, 1, (n, m)) < missing] = np.nan
    return a


def test_roll_cov_matches_numpy_on_last_window():
    a = _data(missing = 0)
    for online in (True, False):
        cov = roll_cov(a, 100, online = online)
        assert cov.shape == (4, 4, 300)
        np.testing.assert_allclose(cov[:, :, -1], np.cov(a[-100:].T), rtol = 1e-10, atol = 1e-12)
        assert np.isnan(cov[:, :, :99]).all()
        cor = roll_cor(a, 100, online = online)
        np.testing.assert_allclose(cor[:, :, -1], np.corrcoef(a[-100:].T), rtol = 1e-10, atol = 1e-12)


def test_roll_cov_is_exactly_symmetric():
    a = _data()
    weights = 0.98 ** np.arange(60)[::-1]
    for online in (True, False):
        for scale in (True, False):
            cov = roll_cov(a, 60, weights = weights, scale = scale, min_obs = 2, complete_obs = False, online = online)
            np.testing.assert_array_equal(cov, np.transpose(cov, (1, 0, 2)))


@pytest.mark.parametrize('complete_obs', [True, False])
@pytest.mark.parametrize('scale', [True, False])
def test_roll_cov_online_and_direct_agree(complete_obs, scale):
    a = _data()
    weights = 0.95 ** np.arange(30)[::-1]
    online = roll_cov(a, 30, weights = weights, scale = scale, min_obs = 3, complete_obs = complete_obs)
    direct = roll_cov(a, 30, weights = weights, scale = scale, min_obs = 3, complete_obs = complete_obs, online = False)
    assert np.isnan(online).sum() == np.isnan(direct).sum()
    np.testing.assert_allclose(online, direct, rtol = 1e-9, atol = 1e-12)


def test_roll_cov_variance_diagonal_matches_roll_var():
    from pyg_roll import roll_var
    a = _data()
    cov = roll_cov(a, 20, min_obs = 2, complete_obs = False)
    for j in range(a.shape[1]):
        np.testing.assert_allclose(cov[j, j], roll_var(a[:, j], 20, min_obs = 2), rtol = 1e-10)


def test_roll_cov_complete_obs():
    a = _data(missing = 0)
    a[95, 0] = np.nan
    pairwise = roll_cov(a, 10, complete_obs = False)
    complete = roll_cov(a, 10, complete_obs = True)
    window = a[91:101]
    assert abs(pairwise[1, 1, 100] - np.var(window[:, 1], ddof = 1)) < 1e-10
    rows = ~np.isnan(window[:, 0])
    assert np.isnan(complete[1, 1, 100]) 
    complete = roll_cov(a, 10, complete_obs = True, min_obs = 9)
    assert abs(complete[1, 1, 100] - np.var(window[rows, 1], ddof = 1)) < 1e-10


def test_roll_cor_is_bounded():
    a = _data()
    weights = 0.9 ** np.arange(15)[::-1]
    for online in (True, False):
        cor = roll_cor(a, 15, weights = weights, min_obs = 3, complete_obs = False, online = online)
        valid = cor[~np.isnan(cor)]
        assert len(valid) > 0
        assert np.abs(valid).max() <= 1 + 1e-12


def test_roll_cov_cross():
    np.random.seed(4)
    x = np.random.normal(0, 1, (200, 3))
    y = np.random.normal(0, 1, (200, 2)) + x[:, :2]
    for online in (True, False):
        cov = roll_cov(x, 50, y = y, online = online)
        assert cov.shape == (3, 2, 200)
        for j in range(3):
            for k in range(2):
                assert abs(cov[j, k, -1] - np.cov(x[-50:, j], y[-50:, k])[0, 1]) < 1e-10
    np.testing.assert_allclose(roll_cov(x, 50, y = x), roll_cov(x, 50), rtol = 1e-10, atol = 1e-12)


@pytest.mark.parametrize('complete_obs', [True, False])
@pytest.mark.parametrize('scale', [True, False])
def test_roll_cov_cross_online_and_direct_agree(complete_obs, scale):
    x = _data(m = 3, seed = 5)
    y = _data(m = 2, seed = 6, missing = 0.15)
    weights = 0.95 ** np.arange(30)[::-1]
    for na_restore in (False, True):
        kwargs = dict(y = y, weights = weights, scale = scale, min_obs = 3, complete_obs = complete_obs, na_restore = na_restore)
        online = roll_cov(x, 30, **kwargs)
        direct = roll_cov(x, 30, online = False, **kwargs)
        assert online.shape == (3, 2, 300)
        assert np.isnan(online).sum() == np.isnan(direct).sum()
        np.testing.assert_allclose(online, direct, rtol = 1e-9, atol = 1e-12)
    restored = roll_cov(x, 30, **kwargs)
    for j in range(3):
        for k in range(2):
            missing = np.isnan(x[:, j]) | np.isnan(y[:, k])
            assert np.isnan(restored[j, k, missing]).all()


def test_roll_cov_na_restore():
    a = _data(missing = 0.2)
    cov = roll_cov(a, 10, min_obs = 2, complete_obs = False, na_restore = True)
    for j in range(a.shape[1]):
        for k in range(a.shape[1]):
            missing = np.isnan(a[:, j]) | np.isnan(a[:, k])
            assert np.isnan(cov[j, k, missing]).all()


def test_roll_cov_with_pandas():
    df = pd.DataFrame(np.random.normal(0, 1, (100, 3)), drange(-99), columns = ['a', 'b', 'c'])
    res = roll_cov_(df, 20)
    assert res.columns == ['a', 'b', 'c']
    assert res.index.equals(df.index)
    assert res.data.shape == (3, 3, 100)
    res = roll_cor_(dict(a = df.a, b = df.b), 20)
    assert list(res.columns) == ['a', 'b']
    assert abs(res.data[0, 1, -1] - df.a.iloc[-20:].corr(df.b.iloc[-20:])) < 1e-10


def test_cov_low_level():
    a = _data(missing = 0)
    any_na = np.zeros(a.shape[0], dtype = bool)
    weights = np.ones(10)
    np.testing.assert_allclose(cov_online(a, None, weights, 10, 2, any_na), cov_direct(a, None, weights, 10, 2, any_na), rtol = 1e-9)


def test_roll_cov_validation():
    with pytest.raises(ValueError):
        roll_cov(np.zeros((10, 2)), 3, y = np.zeros((9, 2)))
