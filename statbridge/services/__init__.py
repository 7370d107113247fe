"""Shared services: fetch layer, caches, reference data and composition."""
