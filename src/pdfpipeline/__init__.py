"""
PDF translation job pipeline.
"""

__version__ = "2.0.0"
