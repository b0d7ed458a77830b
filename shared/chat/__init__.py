"""Chat records and error taxonomy."""
