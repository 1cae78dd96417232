"""SUSTBazaar chat service."""
