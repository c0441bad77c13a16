from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator


FileType = Literal["pdf", "xlsx", "xls", "csv", "txt", "zip", "file"]


class DocumentLink(BaseModel):
    label: str
    target_url: str
    file_type: FileType = "file"
    # "YYYY-MM" when the label carries a billing period (e.g. `107.00-2026-01.pdf`), else "".
    period: str = ""

    @field_validator("target_url")
    @classmethod
    def _reject_non_navigable(cls, v: str) -> str:
        url = (v or "").strip()
        if not url:
            raise ValueError("target_url must be non-empty")
        if url.lower().startswith("javascript:"):
            raise ValueError("target_url must not be a javascript: pseudo-URL")
        if url.startswith("#") or url.endswith("#"):
            raise ValueError("target_url must not be a same-page anchor")
        return url


class PageLink(BaseModel):
    url: str
    label: str


class DiscoveryResult(BaseModel):
    documents: list[DocumentLink] = Field(default_factory=list)
    other_links: list[PageLink] = Field(default_factory=list)
    page_text: str = ""
    source_url: str = ""


class RetrievedFile(BaseModel):
    name: str
    path: str
    size_bytes: int
    modified: datetime

    @property
    def size_label(self) -> str:
        return f"{round(self.size_bytes / 1024)} KB"


class LoginResult(BaseModel):
    authenticated: bool
    is_new_login: bool
