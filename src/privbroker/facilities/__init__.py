"""privbroker elevation facilities.

All facilities inherit from BaseFacility and implement the required methods.
"""
from .base import BaseFacility
from .pkexec import PkexecFacility
from .sudo import SudoFacility

__all__ = [
    'BaseFacility',
    'SudoFacility',
    'PkexecFacility',
]
