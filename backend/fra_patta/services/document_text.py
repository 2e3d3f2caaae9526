"""
Plain-text loading for uploaded patta documents.

PDF pages are read with pdfplumber, Word documents with python-docx. Legacy
.doc and .txt files are decoded as UTF-8 with replacement characters.
"""

from pathlib import Path
from typing import Union

import pdfplumber
from docx import Document as DocxDocument

from fra_patta.core.exceptions import ExtractionError, UnsupportedDocumentError


def _load_pdf(path: Path) -> str:
    with pdfplumber.open(str(path)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages)


def _load_docx(path: Path) -> str:
    document = DocxDocument(str(path))
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def _load_plain(path: Path) -> str:
    return path.read_bytes().decode("utf-8", errors="replace")


LOADERS = {
    ".pdf": _load_pdf,
    ".docx": _load_docx,
    ".doc": _load_plain,
    ".txt": _load_plain,
}


def load_document_text(file_path: Union[str, Path]) -> str:
    """
    Return the text content of a stored document.

    Raises UnsupportedDocumentError for unknown extensions and
    ExtractionError when the file is missing.
    """
    path = Path(file_path)
    suffix = path.suffix.lower()

    loader = LOADERS.get(suffix)
    if loader is None:
        raise UnsupportedDocumentError(suffix or "<none>", str(path))

    if not path.exists():
        raise ExtractionError("Document not found on disk", str(path))

    return loader(path)
