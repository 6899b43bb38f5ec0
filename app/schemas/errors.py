"""
schemas/errors.py — Structured error response model

Shared by the ReconcileError and RequestValidationError handlers in main.py.
"""

from pydantic import BaseModel


class ErrorBody(BaseModel, extra="allow"):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorBody
