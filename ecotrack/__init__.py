"""
EcoTrack - shared, live-updated map of trash bins.
"""

__version__ = "0.1.0"
