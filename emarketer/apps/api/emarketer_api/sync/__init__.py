"""Integration sync: state machine, lease, orchestrator and platform clients."""
