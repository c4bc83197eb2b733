"""API subpackage for the watcher console.

Routers stay thin and delegate to ``AnalysisSession``.
"""
