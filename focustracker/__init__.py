"""
FocusTracker — detection and analytics engine for undistracted time.

Detects long stretches of device inactivity, validates them into focus
sessions, and derives statistics, quality scores and tag recommendations.
"""

__version__ = "0.1.0"
