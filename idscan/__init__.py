"""
IdScan Revenue Impact Engine

Turns per-domain identity and consent telemetry into executive signals:
1. Estimates traffic from Tranco rank
2. Classifies cookie bloat, privacy risk and competitive position
3. Aggregates pain points and opportunities with dollar estimates
4. Keeps a live multi-domain scan in sync over push and poll channels
"""

__version__ = "0.1.0"
