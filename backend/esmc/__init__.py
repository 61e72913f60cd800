"""
ESMC checkpoint: proactive halt evaluation, lesson ledger and intelligence synthesis
"""

__version__ = "0.1.0"
