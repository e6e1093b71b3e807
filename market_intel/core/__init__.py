"""Core mathematics and configuration for the market-intelligence pipeline.

This package contains pure, sport-agnostic building blocks:

- ``sport_config`` - per-sport constants and market thresholds
- ``odds_math``    - implied probability, margin, price-change helpers
- ``signals``      - raw team stats → normalized signals
- ``probability``  - signal-based model and the odds-only market proxy
- ``value``        - value edge, line movement, market intelligence
- ``errors``       - exception hierarchy shared with the batch services

Nothing in this package imports from ``market_intel.services`` or
``market_intel.models``.  All modules are side-effect-free and unit-testable
in isolation.
"""
