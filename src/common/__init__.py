"""Common utilities for music_stream services."""
