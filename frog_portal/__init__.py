"""
Frog Members Portal - backend for a study-abroad and visa-planning platform.
"""

__version__ = "1.0.0"
