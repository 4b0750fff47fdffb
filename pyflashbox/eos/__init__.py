from .eos import ThermoModel, PR, CubicSolution, solve_cubic_eos, ln_phi_cubic, alpha_standard_pr, get_bip, bip_matrix, GAS_GAS_BIPS
