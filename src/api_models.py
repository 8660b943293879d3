"""
API models for the mantohtml converter and its HTTP service
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DocumentMetadata(BaseModel):
    """Metadata copied verbatim into the generated HTML document"""
    model_config = ConfigDict(frozen=True)

    author: Optional[str] = Field(None, description="Author metadata (<meta name=\"author\">)")
    chapter: Optional[str] = Field(None, description="Chapter title, written as the top-level heading")
    copyright: Optional[str] = Field(None, description="Copyright metadata (<meta name=\"copyright\">)")
    stylesheet: Optional[str] = Field(None, description="Stylesheet URL to link, or local CSS file to embed")
    subject: Optional[str] = Field(None, description="Subject metadata (<meta name=\"subject\">)")
    title: Optional[str] = Field(None, description="Document title; defaults to the first topic heading")


class ManDocument(BaseModel):
    """A single man page source"""
    name: str = Field("-", description="Source name used in diagnostics, e.g. 'man/ls.1'")
    content: str = Field(..., description="Man page source text")


class ConvertRequest(BaseModel):
    """Request model for converting one or more man pages into one HTML document"""
    documents: List[ManDocument] = Field(..., min_length=1, description="Man pages, converted in order")
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    known_pages: List[str] = Field(
        default_factory=list,
        description="Sibling pages such as 'ls.1' that '.BR name (section)' references may link to",
    )


class ConvertResponse(BaseModel):
    """Response model for a conversion"""
    html: str = Field(..., description="The generated HTML document")
    diagnostics: List[str] = Field(default_factory=list, description="Warnings reported while converting")
