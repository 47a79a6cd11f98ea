"""modsync — track remote module instances and locally modified files."""

__version__ = "0.1.0"
