"""
hydropad: resilient watershed data acquisition and runoff estimates.
"""

__version__ = "0.1.0"
