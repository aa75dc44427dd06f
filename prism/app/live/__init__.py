"""Live feed: server-side broadcast hub and a reconnecting Python client."""
