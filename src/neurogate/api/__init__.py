"""HTTP and WebSocket surface for a running session."""
