"""
Utility functions for the dataset service
"""

from .row_diff import DIFF_KEY, ROW_DIFF_KEY, Flag, diff_values, render_rows, should_write, values_with_id
from .row_order import order_row

__all__ = [
    "DIFF_KEY",
    "ROW_DIFF_KEY",
    "Flag",
    "diff_values",
    "order_row",
    "render_rows",
    "should_write",
    "values_with_id",
]
