from .shared_fns import convert_to_numpy, normalize, fraction_vector, safe_log
