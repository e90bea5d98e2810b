"""
Source documents handed over by the ingestion collaborator.

Ingestion is responsible for reading uploads; this module only describes
what it hands over and turns it into matching-service payloads. No tabular
or PDF parsing happens here.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union
import logging

from .matching.service import DocumentKind, DocumentPayload

logger = logging.getLogger(__name__)

BINARY_EXTENSIONS = {".pdf"}


class NormalizedType(Enum):
    TABULAR_TEXT = "tabular-text"
    BINARY_DOCUMENT = "binary-document"


@dataclass(frozen=True)
class SourceDocument:
    filename: str
    normalized_type: NormalizedType
    content: Union[str, bytes]

    @classmethod
    def from_path(cls, path: Path, encoding: str = "utf-8") -> "SourceDocument":
        """Read a file, treating PDFs as binary and everything else as text."""
        if path.suffix.lower() in BINARY_EXTENSIONS:
            logger.debug(f"Reading {path.name} as a binary document")
            return cls(path.name, NormalizedType.BINARY_DOCUMENT, path.read_bytes())
        logger.debug(f"Reading {path.name} as tabular text")
        return cls(path.name, NormalizedType.TABULAR_TEXT, path.read_text(encoding=encoding))

    def to_payload(self) -> DocumentPayload:
        if self.normalized_type is NormalizedType.BINARY_DOCUMENT:
            content = self.content if isinstance(self.content, bytes) else self.content.encode()
            return DocumentPayload(DocumentKind.BINARY, content)
        content = self.content if isinstance(self.content, str) else self.content.decode("utf-8")
        return DocumentPayload(DocumentKind.TEXT, content)
