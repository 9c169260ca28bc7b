"""Pydantic Schemas — request/response models at the HTTP boundary."""
