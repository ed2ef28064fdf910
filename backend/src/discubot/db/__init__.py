"""Database access for Discubot."""
