"""Order Worker - attempt-scoped order processing with dual-sink lifecycle events."""
