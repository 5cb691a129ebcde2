"""Pydantic schemas shared by the service layer and the CLI."""
