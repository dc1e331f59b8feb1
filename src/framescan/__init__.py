"""FrameScan: frame scoring and credit-gated analysis engine."""

__version__ = "0.1.0"
