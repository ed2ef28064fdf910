"""HTTP API for Discubot."""
