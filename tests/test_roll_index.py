from pyg_roll import tri_count, lower_triangle, cell_2d, cell_tri, cell_3d


def test_tri_count():
    assert [tri_count(n) for n in range(5)] == [0, 1, 3, 6, 10]


def test_lower_triangle_small():
    assert lower_triangle(0, 1) == (0, 0)
    assert [lower_triangle(z, 2) for z in range(3)] == [(0, 0), (1, 0), (1, 1)]
    assert [lower_triangle(z, 3) for z in range(6)] == [(0, 0), (1, 0), (2, 0), (1, 1), (2, 1), (2, 2)]


def test_lower_triangle_is_a_bijection():
    for n in range(1, 21):
        pairs = [lower_triangle(z, n) for z in range(tri_count(n))]
        assert pairs == [(j, k) for k in range(n) for j in range(k, n)]


def test_cell_2d():
    cells = [cell_2d(z, 3) for z in range(12)]
    assert cells == [(i, j) for i in range(4) for j in range(3)]


def test_cell_tri_covers_every_row_and_pair_once():
    n_rows, n_cols = 7, 5
    cells = [cell_tri(z, n_cols) for z in range(n_rows * tri_count(n_cols))]
    assert len(set(cells)) == len(cells)
    assert set(cells) == {(i, j, k) for i in range(n_rows) for j in range(n_cols) for k in range(j + 1)}


def test_cell_3d_covers_every_row_and_pair_once():
    n_rows, n_cols_x, n_cols_y = 6, 3, 4
    cells = [cell_3d(z, n_rows, n_cols_y) for z in range(n_rows * n_cols_x * n_cols_y)]
    assert len(set(cells)) == len(cells)
    assert set(cells) == {(i, j, k) for i in range(n_rows) for j in range(n_cols_x) for k in range(n_cols_y)}
    assert cells[:n_rows] == [(i, 0, 0) for i in range(n_rows)]
