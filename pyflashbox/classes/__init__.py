from .classes import flash_method, mixing_rule, phase_root, class_dic
