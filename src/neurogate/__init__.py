"""neurogate: closed-loop band-power and head-orientation gated reward controller."""

__version__ = "0.1.0"
