"""Data models for the Jira and Confluence resources bound by the SDK."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _APIModel(BaseModel):
    # Unknown fields are kept; the APIs add fields often.
    model_config = ConfigDict(populate_by_name=True, extra="allow")


# ---------------- Jira -----------------


class User(_APIModel):
    """A Jira user account."""

    self_url: Optional[str] = Field(default=None, alias="self")
    account_id: str = Field(default="", alias="accountId")
    account_type: Optional[str] = Field(default=None, alias="accountType")
    email_address: Optional[str] = Field(default=None, alias="emailAddress")
    display_name: str = Field(default="", alias="displayName")
    active: bool = True
    time_zone: Optional[str] = Field(default=None, alias="timeZone")
    locale: Optional[str] = None


class Issue(_APIModel):
    """A Jira issue. ``fields`` is left untyped; custom fields vary per site."""

    id: str = ""
    key: str = ""
    self_url: Optional[str] = Field(default=None, alias="self")
    fields: dict[str, Any] = Field(default_factory=dict)


# ---------------- Confluence -----------------


class Content(_APIModel):
    """A Confluence page, blog post, comment or attachment."""

    id: Optional[str] = None
    type: str = "page"
    status: Optional[str] = None
    title: str = ""
    space: Optional[dict[str, Any]] = None
    version: Optional[dict[str, Any]] = None
    ancestors: Optional[list[dict[str, Any]]] = None
    body: Optional[dict[str, Any]] = None
    links: Optional[dict[str, Any]] = Field(default=None, alias="_links")


class ContentPage(_APIModel):
    """One page of a paginated content listing."""

    results: list[Content] = Field(default_factory=list)
    start: int = 0
    limit: int = 0
    size: int = 0
    links: Optional[dict[str, Any]] = Field(default=None, alias="_links")
