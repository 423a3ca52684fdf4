"""
StatPulse - Health probing for SDMX API endpoints.
"""

__version__ = "1.0.0"
