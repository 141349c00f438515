"""Course content catalog: discussion groups, sourcecasts and material folders."""

__version__ = "0.1.0"
