from .solvers import NewtonResult, newton_linesearch, fd_jacobian, ORACLE_ERRORS
