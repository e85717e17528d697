"""
DataCleanse: daily phone number list cleaning with historical frequency limits.
"""

__version__ = "1.0.0"
