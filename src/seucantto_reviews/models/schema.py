"""
Strict schema for review front-matter, used by the source validator.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ReviewSourceSchema(BaseModel):
    """
    Front-matter of one review markdown file.

    The build itself only insists on email, rating and timestamp being
    present; this schema is the stricter contract contributors are held to.
    """

    email: EmailStr = Field(..., description="Reviewer email, the identity key")
    rating: int = Field(..., ge=1, le=5, description="Star rating (1-5)")
    timestamp: int = Field(..., gt=0, description="Submission time, epoch millis")
    product_id: Optional[str] = Field(None, description="Reviewed product")
    verified: bool = Field(False, description="Whether the purchase is verified")
    location: Optional[str] = Field(None, max_length=100)
    tags: List[str] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(str_strip_whitespace=True)
