"""Database and in-flight data models for Discubot."""
