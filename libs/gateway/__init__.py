"""Backend access for the console.

- ``client``: ``RequestGateway``, the only code that talks HTTP to the
  introspection backend.
- ``session``: ``AnalysisSession`` (analyze / get_result / get_history /
  check_health) and the ``SessionRegistry`` used by the console service.
"""
