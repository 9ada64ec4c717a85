"""Activity feed and profile resources."""
