"""RentScout: short-term-rental investment screening from live listing data."""

__version__ = "0.1.0"
