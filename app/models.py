"""
Pydantic models for the HTTP API.
Python 3.9 compatible - uses typing.Optional
"""

from typing import Optional

from pydantic import BaseModel


class StatusResponse(BaseModel):
    """Structured status returned by GET /health."""
    status: str = "up"
    version: str
    speechStrategy: str
    llmConfigured: bool
    ttsConfigured: bool
    transferConfigured: bool
    model: Optional[str] = None
