"""Launcher for the codex-monitor backend and frontend processes."""
