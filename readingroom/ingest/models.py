"""Data models for the ingestion API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class Document:
    """A document created by an upload call."""

    id: str = ""
    url: str = ""
    title: str = ""
    doc_author: str = ""
    description: str = ""
    doc_source: str = ""
    chunk_source: str = ""
    published: str = ""
    word_count: int = 0
    page_content: str = ""
    token_count_estimate: int = 0
    location: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> Document:
        return cls(
            id=str(data.get("id") or ""),
            url=data.get("url") or "",
            title=data.get("title") or "",
            doc_author=data.get("docAuthor") or "",
            description=data.get("description") or "",
            doc_source=data.get("docSource") or "",
            chunk_source=data.get("chunkSource") or "",
            published=data.get("published") or "",
            word_count=int(data.get("wordCount") or 0),
            page_content=data.get("pageContent") or "",
            token_count_estimate=int(data.get("token_count_estimate") or 0),
            location=data.get("location") or "",
        )


@dataclass
class UploadResponse:
    """The ``{success, error, documents}`` envelope shared by upload endpoints."""

    success: bool
    error: Any = None
    documents: List[Document] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> UploadResponse:
        return cls(
            success=bool(data.get("success")),
            error=data.get("error"),
            documents=[Document.from_api(d) for d in data.get("documents") or []],
            raw=data,
        )


@dataclass
class Item:
    """One entry (file or folder) of the document listing tree."""

    name: str = ""
    type: str = ""
    id: str = ""
    url: str = ""
    title: str = ""
    chunk_source: str = ""
    word_count: int = 0
    cached: bool = False
    items: List[Item] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> Item:
        return cls(
            name=data.get("name") or "",
            type=data.get("type") or "",
            id=str(data.get("id") or ""),
            url=data.get("url") or "",
            title=data.get("title") or "",
            chunk_source=data.get("chunkSource") or "",
            word_count=int(data.get("wordCount") or 0),
            cached=bool(data.get("cached")),
            items=[cls.from_api(i) for i in data.get("items") or []],
        )


def flatten_documents(listing: Dict[str, Any]) -> Dict[str, List[Item]]:
    """Flatten a ``v1/documents`` listing into ``{folder name: [Item, ...]}``.

    Top-level entries are folders.  Sub-folders one and two levels down are
    merged into their top-level folder.
    """
    root = (listing.get("localFiles") or {}).get("items") or []
    folders: Dict[str, List[Item]] = {}
    for top in (Item.from_api(i) for i in root):
        flat = folders.setdefault(top.name, [])
        for child in top.items:
            if child.is_folder:
                flat.extend(c for c in child.items if not c.is_folder)
                for grandchild in child.items:
                    if grandchild.is_folder:
                        flat.extend(grandchild.items)
            else:
                flat.append(child)
    return folders
