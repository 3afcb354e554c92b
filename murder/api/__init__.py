"""HTTP and WebSocket surface over stored game instances."""
