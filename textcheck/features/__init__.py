"""
Server features: access control and metrics
"""

from .security import CORSConfig, IPFilter, RateLimiter, cors_headers

__all__ = ["CORSConfig", "IPFilter", "RateLimiter", "cors_headers"]
