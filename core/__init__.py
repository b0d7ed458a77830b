"""Chat server core: presence tracking, message visibility, scheduling."""
