"""HTTP and WebSocket surface: request schemas and versioned routers."""
