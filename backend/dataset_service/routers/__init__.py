"""
Dataset service routers
"""

from . import datasets

__all__ = ["datasets"]
