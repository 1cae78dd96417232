"""Pydantic schemas for the SUSTBazaar API."""
