"""Social sports-picks platform API."""
