"""S&P 500 below-SMA scanner."""

__version__ = "0.1.0"
