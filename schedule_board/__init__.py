"""
Session schedule board.

Derives live session statuses, validates and performs trainer reassignment,
and lays sessions out into the board's grid, timeline and list views.
"""

__version__ = "0.1.0"
