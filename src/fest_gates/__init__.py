"""Quality gate policy resolution and gate task generation for festival trees."""

__version__ = "0.1.0"
