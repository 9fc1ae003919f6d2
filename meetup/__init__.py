"""Community meetup backend: meetings, participation and activity attendance."""

__version__ = "0.1.0"
