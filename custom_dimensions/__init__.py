"""
Custom Dimensions Configuration Service
"""

__version__ = "1.0.0"
