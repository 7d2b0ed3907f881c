"""
RouteRisk - blind-spot detection and multi-criteria route risk grading.
"""
__version__ = "0.1.0"
