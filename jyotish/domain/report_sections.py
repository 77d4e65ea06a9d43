"""Découpage d'un rapport markdown en sections (`## Titre`) pour l'affichage."""

from __future__ import annotations

from pydantic import BaseModel

DEFAULT_SECTION_TITLE = "Report"


class ReportSection(BaseModel):
    title: str
    content: str


def split_sections(content: str) -> list[ReportSection]:
    """
    Découpe sur les lignes commençant par `## `.

    Le texte précédant le premier titre n'est pas une section. Sans aucun titre, une seule
    section `Report` contient tout le texte.
    """
    sections: list[ReportSection] = []
    title: str | None = None
    body: list[str] = []
    for line in (content or "").split("\n"):
        if line.startswith("## "):
            if title is not None:
                sections.append(ReportSection(title=title, content="\n".join(body).strip()))
            title = line[3:].strip()
            body = []
        elif title is not None:
            body.append(line)
    if title is not None:
        sections.append(ReportSection(title=title, content="\n".join(body).strip()))
    if not sections:
        return [ReportSection(title=DEFAULT_SECTION_TITLE, content=content or "")]
    return sections
