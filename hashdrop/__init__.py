"""hashdrop - anonymous text and file sharing with content-addressed links."""

__version__ = "1.0.0"
