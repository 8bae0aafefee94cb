"""
Prometheus metrics for the team chat transport.

Registered on the default registry so a host application's exporter picks
them up without extra wiring.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

# Use standard Prometheus naming conventions: namespace_subsystem_name_unit
NAMESPACE = "teamchat"

# ============================================================================
# Frame Metrics
# ============================================================================

frames_total = Counter(
    f"{NAMESPACE}_frames_total",
    "Total number of frames crossing the wire",
    ["direction", "type"],  # direction: "inbound" or "outbound"
)

frames_dropped_total = Counter(
    f"{NAMESPACE}_frames_dropped_total",
    "Inbound frames dropped by the codec",
    ["reason"],  # "invalid_json", "not_object", "unknown_type", "invalid_payload"
)

# ============================================================================
# Connection Metrics
# ============================================================================

connection_attempts_total = Counter(
    f"{NAMESPACE}_connection_attempts_total",
    "Total number of physical connection attempts",
)

reconnects_scheduled_total = Counter(
    f"{NAMESPACE}_reconnects_scheduled_total",
    "Total number of reconnection timers scheduled",
)

connection_state = Gauge(
    f"{NAMESPACE}_connection_state",
    "Number of clients currently in each active (non-disconnected) connection state",
    ["state"],
)

# ============================================================================
# Dispatch Metrics
# ============================================================================

handler_errors_total = Counter(
    f"{NAMESPACE}_handler_errors_total",
    "Subscriber callbacks that raised during dispatch",
    ["kind"],
)
