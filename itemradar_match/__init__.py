"""
ItemRadar Match
---------------
Lost & found matching engine and AI quota guard.
"""

__version__ = "1.0.0"
