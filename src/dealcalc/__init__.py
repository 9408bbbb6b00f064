"""dealcalc -- safe formula engine for real-estate deal underwriting."""

__version__ = "0.3.0"
