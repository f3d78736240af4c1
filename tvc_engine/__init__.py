"""Timed multiple-choice (TVC) quiz engine: grading authority and quiz client."""

__version__ = "1.0.0"
