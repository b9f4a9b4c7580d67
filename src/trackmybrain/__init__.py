"""TrackMyBrain: a personal memory store with similarity retrieval."""

__version__ = "0.1.0"
