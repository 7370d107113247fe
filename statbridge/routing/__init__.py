"""
Routing Module

Decides which upstream agency answers a request and speaks every geography
coding system the agencies use.

Components:
- CountryResolver: Region normalization, membership and geography level
- RegionCrosswalk: ISO2 / ISO3 / M49 / NUTS / SCB conversion through ISO3
- RoutingPolicy: Candidate ordering and sequential provider fallback
"""

from .country_resolver import CountryResolver
from .policy import RoutingPolicy, plan_candidates, route
from .region_codes import RegionCrosswalk, get_region_crosswalk, map_region_code

__all__ = [
    "CountryResolver",
    "RegionCrosswalk",
    "RoutingPolicy",
    "get_region_crosswalk",
    "map_region_code",
    "plan_candidates",
    "route",
]
