"""Session-scoped result caches.

Primary components:
- ``base``: abstract ``ResultCache`` interface.
- ``memory``: process-local dictionary backend (default).
- ``redis_store``: Redis backend, one hash per session.
- ``factory``: helpers to construct a cache from typed config.

Guidance:
- Create one cache per browsing session via
  ``factory.create_result_cache`` and pass it explicitly; there is no shared
  module-level cache.
"""
