from .saturation import (x0_bubble_pressure, bubble_pressure, x0_dew_pressure, dew_pressure, bubble_pressure_estimate,
                         dew_pressure_estimate, pseudo_saturation_pressures, supercritical_mask)
