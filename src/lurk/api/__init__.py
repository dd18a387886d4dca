"""HTTP and WebSocket surface of the Lurk application."""
