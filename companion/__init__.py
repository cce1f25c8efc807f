"""
Adaptive learning engine.

Tracks per-skill mastery with Bayesian Knowledge Tracing, schedules
spaced-repetition reviews (SM-2 family), and recommends and sequences
learning content.
"""

__version__ = "1.0.0"
