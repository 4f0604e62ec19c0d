"""Transport implementations and session delegate hooks."""
