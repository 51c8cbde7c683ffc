# ingestion/loaders.py
"""
Document parser: RawDocument -> ParsedDocument.

Supported formats:
- PDF (.pdf)
- HTML pages (.html, .htm)
- Text files (.txt, .md, ...)
- Code and config files (.py, .js, .java, .yaml, ...)
- Unknown extensions, as long as the bytes decode as text

Anything else raises ParseError. Parse failures are deterministic for a
given byte content, so callers skip the document instead of retrying.
"""
import hashlib
import io
from typing import Tuple

import chardet
import trafilatura

# PDF loading
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ingestion.models import ParseError, ParsedDocument, RawDocument

# Text-based files (code, markdown, plain text)
TEXT_EXTENSIONS = {
    ".txt",
    ".md",
    ".markdown",
    ".rst",
    ".py",
    ".js",
    ".ts",
    ".jsx",
    ".tsx",
    ".java",
    ".kt",
    ".scala",
    ".groovy",
    ".c",
    ".cpp",
    ".h",
    ".hpp",
    ".cs",
    ".go",
    ".rs",
    ".rb",
    ".php",
    ".swift",
    ".r",
    ".sql",
    ".sh",
    ".bash",
    ".zsh",
    ".yaml",
    ".yml",
    ".json",
    ".xml",
    ".toml",
    ".ini",
    ".cfg",
    ".properties",
    ".gradle",
    ".csv",
    ".css",
    ".scss",
    ".sass",
    ".less",
}

HTML_EXTENSIONS = {".html", ".htm"}

# Below this chardet confidence an unknown file is treated as binary
MIN_TEXT_CONFIDENCE = 0.5


def calculate_file_hash(content: bytes) -> str:
    """Calculate SHA256 hash of the raw bytes."""
    return hashlib.sha256(content).hexdigest()


def load_pdf(raw_bytes: bytes) -> Tuple[str, dict]:
    """
    Extract text from PDF bytes.

    Returns:
        Tuple of (text_content, metadata_dict)
    """
    reader = PdfReader(io.BytesIO(raw_bytes))

    # Extract text from all pages
    text_parts = []
    for i, page in enumerate(reader.pages):
        page_text = page.extract_text()
        if page_text:
            text_parts.append(f"[Page {i + 1}]\n{page_text}")

    text = "\n\n".join(text_parts)

    metadata = {"page_count": len(reader.pages)}
    if reader.metadata and reader.metadata.title:
        metadata["title"] = str(reader.metadata.title)

    return text, metadata


def decode_text(raw_bytes: bytes, strict: bool = False) -> Tuple[str, dict]:
    """
    Decode bytes with automatic encoding detection.

    With ``strict`` the bytes must look like text: NUL bytes, low detection
    confidence or undecodable sequences raise ValueError.
    """
    if not raw_bytes:
        return "", {"encoding": "utf-8", "size_bytes": 0}

    if strict and b"\x00" in raw_bytes:
        raise ValueError("unsupported binary content")

    detected = chardet.detect(raw_bytes)
    encoding = detected["encoding"] or "utf-8"
    confidence = detected.get("confidence") or 0

    if strict:
        if detected["encoding"] is None or confidence < MIN_TEXT_CONFIDENCE:
            raise ValueError("unsupported binary content")
        text = raw_bytes.decode(encoding)
    else:
        text = raw_bytes.decode(encoding, errors="replace")

    metadata = {
        "encoding": encoding,
        "size_bytes": len(raw_bytes),
        "confidence": confidence,
    }

    return text, metadata


def load_html(raw_bytes: bytes) -> Tuple[str, dict]:
    """
    Extract clean text from an HTML document.

    Uses trafilatura to remove navigation, ads, boilerplate, etc.
    """
    html, metadata = decode_text(raw_bytes)

    text = trafilatura.extract(
        html,
        include_comments=False,
        include_tables=True,
    )
    if text is None:
        text = ""

    metadata_obj = trafilatura.extract_metadata(html)
    if metadata_obj is not None and metadata_obj.title:
        metadata["title"] = metadata_obj.title

    return text, metadata


def parse(raw: RawDocument) -> ParsedDocument:
    """
    Main entry point - detect file type and extract text.

    Raises:
        ParseError: the bytes cannot be read or decoded
    """
    try:
        raw_bytes = raw.read_bytes()
    except OSError as e:
        raise ParseError(f"cannot read file: {e}", raw.source) from e

    suffix = raw.suffix
    file_type = suffix[1:] if suffix else "unknown"

    try:
        # Route to appropriate loader
        if suffix == ".pdf":
            text, metadata = load_pdf(raw_bytes)
        elif suffix in HTML_EXTENSIONS:
            text, metadata = load_html(raw_bytes)
        elif suffix in TEXT_EXTENSIONS:
            text, metadata = decode_text(raw_bytes)
        else:
            # Try as text file for unknown extensions
            text, metadata = decode_text(raw_bytes, strict=True)
            file_type = "unknown"
    except (PdfReadError, ValueError, UnicodeDecodeError, LookupError) as e:
        raise ParseError(str(e) or type(e).__name__, raw.source) from e

    metadata.update(
        {
            "source": raw.source,
            "file_name": raw.name,
            "file_type": file_type,
            "file_hash": calculate_file_hash(raw_bytes),
        }
    )

    return ParsedDocument(source=raw.source, text=text, metadata=metadata)
