"""Upstream agency providers and the shared SDMX REST client."""
