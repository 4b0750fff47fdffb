from .validate import validate_methods, check_arraysize, check_flash_inputs, component_indices
