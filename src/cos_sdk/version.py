"""Version information for COS Python SDK"""

__version__ = "0.1.0"
