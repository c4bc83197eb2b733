"""Shared libraries for the watcher console.

Subpackages:
- ``libs.common``: configuration, logging, metrics, and tracing.
- ``libs.introspection``: canonical models, identifier codec, and the schema
  adapter that normalizes backend payloads.
- ``libs.result_cache``: per-session result caches (memory, Redis).
- ``libs.gateway``: the HTTP gateway to the introspection backend and the
  session operations built on it.

Usage:
- Import stable, reusable functionality from here to keep service code lean.

Notes:
- Avoid service-specific logic; keep modules cohesive and broadly useful.
"""
