"""Utility functions for statbridge."""
from .retry import fetch_with_retry, is_rate_limit_error, with_retry

__all__ = [
    'fetch_with_retry',
    'is_rate_limit_error',
    'with_retry',
]
