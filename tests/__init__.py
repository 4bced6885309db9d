"""
Test package for threshold_sweep.

Unit tests cover each sweep component with subprocess calls mocked;
integration tests drive whole sweeps with fake adapters or fake tools.
"""

__version__ = "1.0.0"
