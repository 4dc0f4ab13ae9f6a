"""inline-issues - Track inline TODO/BUG annotations in a durable journal."""

__version__ = "0.1.0"
