# ridehail/__init__.py
"""
Ride-hailing backend: Location Service и Matching Service.
"""

__version__ = "1.0.0"
