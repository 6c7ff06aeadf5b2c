"""
Utility functions module.

Time Semantics:
- Venue epochs on tick frames are authoritative for tick timestamps
- Wall-clock time is only used for operational purposes and fallback
- Latency monitoring tracks difference between venue and wall-clock time
"""
