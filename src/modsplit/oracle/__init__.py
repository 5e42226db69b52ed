"""Optional advisory grouping oracle reached over HTTP."""

from .client import GroupingOracle, RateLimiter, validate_grouping

__all__ = ["GroupingOracle", "RateLimiter", "validate_grouping"]
