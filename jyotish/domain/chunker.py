"""Découpage des rapports en segments chevauchants pour l'indexation.

Les paragraphes (séparés par une ligne vide) sont accumulés tant que le tampon reste sous
`CHUNK_SIZE` tokens approximatifs (1 token ~ 4 caractères). Chaque nouveau segment reprend la
fin du précédent (`CHUNK_OVERLAP` tokens) pour préserver le contexte aux frontières.
"""

from __future__ import annotations

import re

from jyotish.domain.retrieval_types import Chunk

CHUNK_SIZE = 500  # tokens (~400 mots)
CHUNK_OVERLAP = 50  # tokens repris du segment précédent
CHARS_PER_TOKEN = 4

_PARAGRAPH_SPLIT = re.compile(r"\n[ \t]*\n")
_HEADING = re.compile(r"^##?\s+(.+)$", re.MULTILINE)


def _tokens(text: str) -> float:
    return len(text) / CHARS_PER_TOKEN


def extract_section_title(content: str) -> str | None:
    """Retourne le titre du premier en-tête markdown `#`/`##` du segment, s'il existe."""
    match = _HEADING.search(content)
    return match.group(1).strip() if match else None


def _make_chunk(content: str, index: int, report_type: str) -> Chunk:
    return Chunk(
        content=content,
        index=index,
        metadata={
            "report_type": report_type,
            "section_title": extract_section_title(content),
        },
    )


def chunk_text(text: str, report_type: str) -> list[Chunk]:
    """Découpe `text` en segments ordonnés, indexés à partir de 0.

    Fonction pure et déterministe. Un texte sans paragraphe exploitable (vide ou blanc) produit
    un unique segment contenant l'entrée telle quelle.
    """
    paragraphs = [p for p in _PARAGRAPH_SPLIT.split(text) if p.strip()]
    if not paragraphs:
        return [_make_chunk(text, 0, report_type)]

    chunks: list[Chunk] = []
    buffer = ""
    for paragraph in paragraphs:
        if buffer and _tokens(buffer) + _tokens(paragraph) > CHUNK_SIZE:
            chunks.append(_make_chunk(buffer.strip(), len(chunks), report_type))
            overlap = buffer[-CHUNK_OVERLAP * CHARS_PER_TOKEN :]
            buffer = f"{overlap}\n\n{paragraph}"
        else:
            buffer = f"{buffer}\n\n{paragraph}" if buffer else paragraph

    if buffer.strip():
        chunks.append(_make_chunk(buffer.strip(), len(chunks), report_type))
    return chunks
