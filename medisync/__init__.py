"""MediSync access service: time-limited doctor access to patient documents."""

__version__ = "0.1.0"
