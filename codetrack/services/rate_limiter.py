"""
In-memory rate limiting for student-triggered refreshes.

Uses deques and time-based windows keyed by "<student_id>:<action>".
"""

import time
import asyncio
from collections import defaultdict, deque
import logging

logger = logging.getLogger(__name__)

class SimpleRateLimiter:
    """In-memory sliding-window rate limiter.
    
    Note: request history is kept per process. Multi-instance deployments get
    one window per instance.
    """
    
    def __init__(self, clock=time.monotonic):
        self._requests = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._clock = clock
    
    async def is_allowed(self, user_id: str, action: str, limit: int, window: int) -> bool:
        """Check if user can perform action within rate limit, recording the attempt when allowed."""
        if limit <= 0 or window <= 0:
            return False
            
        key = f"{user_id}:{action}"
        now = self._clock()
        
        async with self._lock:
            # Clean old requests outside window
            while self._requests[key] and self._requests[key][0] <= now - window:
                self._requests[key].popleft()
            
            if len(self._requests[key]) < limit:
                self._requests[key].append(now)
                return True
            
            logger.debug(f"Rate limit hit for {key}")
            return False
    
    def reset(self, user_id: str = None):
        """Forget recorded requests for one user, or for everyone."""
        if user_id is None:
            self._requests.clear()
            return
        for key in [k for k in self._requests if k.startswith(f"{user_id}:")]:
            del self._requests[key]
