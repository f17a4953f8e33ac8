"""ledgersync - shared, append-only coordination log for coding agents."""

__version__ = "0.2.0"
