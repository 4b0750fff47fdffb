from .flash import (tp_flash, tp_flash2, tpd, init_preferred_method, resolve_method, index_reduction,
                    index_expansion, supports_reduction, numphases, TPFlashMethod, MichelsenTPFlash, DETPFlash,
                    MultiPhaseTPFlash, FlashResult, FlashData, METHODS)
