"""Domain records (Disaster, Alert) and their in-memory repository."""
