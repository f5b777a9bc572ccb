"""
Python security scanners.
"""

from .bandit import BanditScanner
from .safety import SafetyScanner

__all__ = ['BanditScanner', 'SafetyScanner']
