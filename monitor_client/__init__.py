"""Client side of the codex-monitor backend connection."""
