from enum import IntEnum

__all__ = ['Stat', 'Algo', 'SUM', 'MEAN', 'PROD', 'VAR', 'SD', 'SCALE']

###############
##
## statistic and algorithm tags
##
###############

class Stat(IntEnum):
    """
    The statistic a kernel emits. The recurrence skeleton is shared and only the final-value formula differs by kind.
    Compiled code cannot see an IntEnum, so the kernels receive int(stat) and compare against the module level constants below.
    """
    SUM = 0
    MEAN = 1
    PROD = 2
    VAR = 3
    SD = 4
    SCALE = 5
    COV = 6
    LM = 7


class Algo(IntEnum):
    """
    ONLINE: O(1) per row exponential recurrence. DIRECT: O(width) per cell recomputation.
    The public functions pick one per call and look the engine up in a table keyed by Algo.
    """
    ONLINE = 0
    DIRECT = 1


SUM = int(Stat.SUM)
MEAN = int(Stat.MEAN)
PROD = int(Stat.PROD)
VAR = int(Stat.VAR)
SD = int(Stat.SD)
SCALE = int(Stat.SCALE)
