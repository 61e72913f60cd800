"""
Tier feature table and shared constants
"""
from typing import Any, Dict, List

LEDGER_VERSION = "1.0"
LEDGER_SYSTEM = "ESMC"

TIER_HIERARCHY: List[str] = ["FREE", "PRO", "MAX", "VIP"]

_ALL_INTELLIGENCE = ["PIU", "DKI", "UIP", "PCA", "ATLAS", "CUP", "TBI", "PFI"]
_ALL_COLONELS = ["ALPHA", "BETA", "GAMMA", "DELTA", "EPSILON", "ZETA", "ETA"]
_ALL_MODULES = [f"ESMC_3.{minor}" for minor in range(1, 12)]

TIER_FEATURES: Dict[str, Dict[str, Any]] = {
    "FREE": {
        "intelligence": ["PIU"],
        "colonels": ["ALPHA", "BETA", "GAMMA"],
        "modules": [],
        "memory": "json",
        "max_projects": 1,
        "max_hardware": 1,
        "red_teaming": False,
        "time_machine": False,
        "memory_bank": False,
        "echelon": False,
        "version": "ESMC 3.2",
        "display_name": "FREE",
    },
    "PRO": {
        "intelligence": ["PIU", "DKI", "UIP", "PCA"],
        "colonels": ["ALPHA", "BETA", "GAMMA", "DELTA", "EPSILON", "ZETA"],
        "modules": ["ESMC_3.2", "ESMC_3.3", "ESMC_3.4", "ESMC_3.5", "ESMC_3.7", "ESMC_3.8"],
        "memory": "json",
        "max_projects": 10,
        "max_hardware": 1,
        "red_teaming": False,
        "time_machine": True,
        "memory_bank": True,
        "echelon": True,
        "version": "ESMC 3.7",
        "display_name": "PRO",
    },
    "MAX": {
        "intelligence": list(_ALL_INTELLIGENCE),
        "colonels": list(_ALL_COLONELS),
        "modules": list(_ALL_MODULES),
        "memory": "mysql",
        "max_projects": 999,
        "max_hardware": 1,
        "red_teaming": True,
        "time_machine": True,
        "memory_bank": True,
        "echelon": True,
        "version": "ESMC 3.11",
        "display_name": "MAX",
    },
    "VIP": {
        "intelligence": list(_ALL_INTELLIGENCE),
        "colonels": list(_ALL_COLONELS),
        "modules": list(_ALL_MODULES),
        "memory": "mysql",
        "max_projects": 999,
        "max_hardware": 1,
        "red_teaming": True,
        "time_machine": True,
        "memory_bank": True,
        "echelon": True,
        "version": "ESMC 3.11",
        "display_name": "VIP",
    },
}
