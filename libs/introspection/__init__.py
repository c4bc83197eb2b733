"""Normalization of introspection backend payloads.

Primary components:
- ``codec``: ``L{layer}H{sub_unit}`` component tokens.
- ``quantizer``: qualitative edge strengths to numeric weights.
- ``concerns``: risk-factor tokens and structured concerns to ``Concern``.
- ``wire``: typed models for every known backend wire schema.
- ``adapter``: schema detection and the per-schema mapping functions.
- ``models``: the canonical records consumed by the presentation layer.

Guidance:
- Call ``adapter.adapt`` at the boundary; never inspect raw payload shapes
  anywhere else.
"""
