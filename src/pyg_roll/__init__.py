from pyg_roll._decorators import compiled, parallel, apply_along_first_axis, get_num_threads, set_num_threads
from pyg_roll._kinds import Stat, Algo
from pyg_roll._index import tri_count, lower_triangle, cell_2d, cell_tri, cell_3d
from pyg_roll._math import EPS, SQRT_EPS
from pyg_roll._online import roll_online
from pyg_roll._direct import roll_direct
from pyg_roll._cov import cov_online, cov_direct, lm_cov_online, lm_cov_direct
from pyg_roll._lm import roll_lm_solve
from pyg_roll._roll import roll_sum, roll_prod, roll_mean, roll_var, roll_sd, roll_scale, \
                            roll_cov, roll_cor, roll_cov_, roll_cor_, roll_lm
