"""
Collection Scanner

Extracts item names and owned quantities from screenshots of a 12 x 3
collection grid.
"""

__version__ = "0.1.0"
