"""
Services package for codetrack.

Service layer: configuration, grading, ranking, verification and the
profile synchronization engine.
"""

from .base import BaseService
from .rate_limiter import SimpleRateLimiter

__all__ = ['BaseService', 'SimpleRateLimiter']
