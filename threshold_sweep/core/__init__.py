"""Core sweep modules."""
