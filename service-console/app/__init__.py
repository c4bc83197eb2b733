"""Watcher console service package.

Layout:
- ``api``: HTTP endpoints for analyze, results, history, health, and
  session lifecycle.
- ``main``: application factory, lifespan, error mapping, and metrics.
"""
