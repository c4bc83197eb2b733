"""Tests for the watcher console.

Unit tests cover the identifier codec, the schema adapter and its helpers,
the session caches, the request gateway (against ``httpx.MockTransport``)
and the console API (through FastAPI's ``TestClient``). No test needs a live
introspection backend or Redis server.
"""
