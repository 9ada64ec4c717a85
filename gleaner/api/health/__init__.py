"""Health probe resources."""
