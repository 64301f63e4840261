"""Posting source abstraction."""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field


class SourcePosting(BaseModel):
    """A posting as listed by an external source."""
    id: str = Field(..., description="Identifier within the source")
    title: str = Field(..., description="Job title")
    location: Optional[str] = Field(None, description="Location name")
    content: str = Field("", description="Raw, markup-bearing description")
    url: Optional[str] = Field(None, description="Canonical posting URL")
    updated_at: Optional[str] = Field(None, description="Last-updated timestamp")


class PostingSource(ABC):
    """A read-only feed of postings for one organization."""
    
    name: str
    company: str
    
    @abstractmethod
    async def fetch_postings(self) -> List[SourcePosting]:
        """Return the organization's current postings.
        
        Raises:
            SourceFetchError: If the feed is unreachable or answers non-OK
        """
