"""Service layer for the chat core."""
