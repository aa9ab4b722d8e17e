"""Prebuilt frontend asset server."""
