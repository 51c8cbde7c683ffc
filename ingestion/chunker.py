# ingestion/chunker.py
"""
Text chunking strategies.

Chunks should be:
- Small enough to embed well (never more than max_chunk_size tokens)
- Cut at natural boundaries (paragraph, line, sentence, word)
- Slices of the original text: with no overlap, joining the chunks of a
  document in index order gives back its text
"""
import re
from typing import List, Optional, Sequence

import tiktoken

from config import CHUNK_SIZE, CHUNK_OVERLAP
from ingestion.models import Chunk, ParsedDocument

# Load tokenizer (cl100k_base is used by text-embedding-3-small/large)
_tokenizer = tiktoken.get_encoding("cl100k_base")

# Each pattern matches a zero-width position right after a boundary, so
# re.split keeps separators attached to the piece they end.
PARAGRAPH = re.compile(r"(?<=\n\n)(?=[^\n])")
LINE = re.compile(r"(?<=\n)(?=[^\n])")
SENTENCE = re.compile(r"(?<=[.!?])(?=\s)")
WORD = re.compile(r"(?<=\s)(?=\S)")

# Function/class definitions at the start of a line
CODE_DEFINITION = re.compile(
    r"(?<=\n)(?=(?:def |class |function |const |let |var |public |private |"
    r"protected |async |fn |func |interface |type |impl ))"
)

TEXT_SEPARATORS = (PARAGRAPH, LINE, SENTENCE, WORD)
CODE_SEPARATORS = (CODE_DEFINITION, PARAGRAPH, LINE, WORD)

CODE_TYPES = {
    "py",
    "js",
    "ts",
    "jsx",
    "tsx",
    "java",
    "kt",
    "scala",
    "groovy",
    "c",
    "cpp",
    "h",
    "hpp",
    "cs",
    "go",
    "rs",
    "rb",
    "php",
    "swift",
}


def count_tokens(text: str) -> int:
    """Count the number of tokens in text."""
    return len(_tokenizer.encode(text, disallowed_special=()))


def _split_pieces(text: str, separators: Sequence[re.Pattern], max_tokens: int) -> List[str]:
    """
    Cut text into pieces of at most max_tokens each.

    Tries each separator in turn and recurses into pieces that are still too
    large. Token-sized slices are the last resort.
    """
    if count_tokens(text) <= max_tokens:
        return [text]

    for position, separator in enumerate(separators):
        parts = [p for p in separator.split(text) if p]
        if len(parts) > 1:
            pieces: List[str] = []
            for part in parts:
                pieces.extend(_split_pieces(part, separators[position + 1 :], max_tokens))
            return pieces

    # No natural boundary left: cut into the longest slices that fit
    return _split_by_tokens(text, max_tokens)


def _split_by_tokens(text: str, max_tokens: int) -> List[str]:
    """
    Cut boundary-free text (minified code, encoded blobs) into slices of at
    most max_tokens.

    A character is at most four UTF-8 bytes, hence at most four tokens, so
    max_tokens // 4 characters always fit. Each slice grows by doubling from
    there and is then bisected; this counts O(log n) candidates per slice.
    """
    pieces: List[str] = []
    start = 0
    while start < len(text):
        fits = min(len(text), start + max(1, max_tokens // 4))
        over = None
        while fits < len(text):
            end = min(len(text), start + 2 * (fits - start))
            if count_tokens(text[start:end]) > max_tokens:
                over = end
                break
            fits = end
        if over is not None:
            while over - fits > 1:
                middle = (fits + over) // 2
                if count_tokens(text[start:middle]) <= max_tokens:
                    fits = middle
                else:
                    over = middle
        pieces.append(text[start:fits])
        start = fits
    return pieces


def _tail(parts: List[str], max_tokens: int) -> List[str]:
    """Trailing parts whose joined text stays within max_tokens."""
    tail: List[str] = []
    for part in reversed(parts):
        if count_tokens("".join([part] + tail)) > max_tokens:
            break
        tail.insert(0, part)
    return tail


def _merge_pieces(pieces: List[str], max_tokens: int, overlap: int) -> List[str]:
    """
    Greedily pack consecutive pieces into chunks that fit the budget.

    A new chunk starts with up to ``overlap`` tokens of trailing pieces from
    the previous one; they are dropped first when the budget gets tight.
    """
    chunks: List[str] = []
    current: List[str] = []
    fresh = 0  # pieces in current that are not overlap

    for piece in pieces:
        if fresh and count_tokens("".join(current) + piece) > max_tokens:
            chunks.append("".join(current))

            # Calculate overlap from current chunk
            current = _tail(current, overlap) if overlap else []
            while current and count_tokens("".join(current) + piece) > max_tokens:
                current.pop(0)
            fresh = 0

        current.append(piece)
        fresh += 1

    # Don't forget the last chunk!
    if fresh:
        chunks.append("".join(current))

    return chunks


def chunk_text(
    text: str,
    chunk_size: int = CHUNK_SIZE,
    chunk_overlap: int = CHUNK_OVERLAP,
    code: bool = False,
) -> List[str]:
    """
    Split text into chunks of at most chunk_size tokens.

    Strategy:
    1. Cut at the most natural boundary that fits (paragraphs first;
       definitions first for code)
    2. Pack consecutive pieces until chunk_size is reached
    3. Start each new chunk with up to chunk_overlap tokens of the previous one

    Returns:
        List of chunk strings, in document order
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be >= 0 and smaller than chunk_size")

    if not text.strip():
        return []

    separators = CODE_SEPARATORS if code else TEXT_SEPARATORS
    pieces = _split_pieces(text, separators, chunk_size)
    texts = _merge_pieces(pieces, chunk_size, chunk_overlap)

    # Whitespace-only leftovers carry nothing worth embedding
    return [t for t in texts if t.strip()]


def split(
    document: ParsedDocument,
    max_chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
    tag: Optional[str] = None,
) -> List[Chunk]:
    """
    Split a parsed document into tagged, immutable chunks.

    Every chunk keeps the document's metadata and additionally gets
    ``chunk_index`` and, when a tag is given, ``knowledge = tag``.
    """
    is_code = document.metadata.get("file_type") in CODE_TYPES
    texts = chunk_text(document.text, max_chunk_size, overlap, code=is_code)

    chunks: List[Chunk] = []
    for i, content in enumerate(texts):
        metadata = dict(document.metadata)
        metadata["chunk_index"] = i
        if tag is not None:
            metadata["knowledge"] = tag
        chunks.append(
            Chunk(
                text=content,
                index=i,
                token_count=count_tokens(content),
                metadata=metadata,
            )
        )

    return chunks
