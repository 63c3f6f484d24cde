"""
conductor — build and export docker-compose pods with environment overrides.
"""

__version__ = "0.1.0"
