"""Lacquer: personal task tracking with projects, locations and proximity filters."""

__version__ = "0.4.0"
