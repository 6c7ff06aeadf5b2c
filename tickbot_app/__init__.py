"""
Tickbot - Streaming Digit Trading Engine

Streams real-time ticks from a Deriv-style WebSocket venue, keeps rolling
last-digit statistics and drives an automated trading session with
take-profit / stop-loss thresholds and pluggable stake progression.
"""

__version__ = "0.1.0"
__author__ = "Tickbot Team"
