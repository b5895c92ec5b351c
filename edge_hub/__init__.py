"""
Edge Hub

Offline-capable mirror of cloud content, device and student registries,
with periodic bidirectional reconciliation against the cloud.
"""

__version__ = "1.0.0"
