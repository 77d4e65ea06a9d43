"""Stockage local des PDF de rapports."""

from __future__ import annotations

import os
from pathlib import Path


class PDFStorage:
    """Écrit et relit `{root}/{report_id}.pdf`; l'écriture est atomique (fichier temporaire)."""

    def __init__(self, root: str) -> None:
        self.root = Path(root)

    def path_for(self, report_id: str) -> Path:
        # les identifiants sont des UUID; on refuse tout séparateur de chemin
        if not report_id or os.sep in report_id or "/" in report_id or report_id.startswith("."):
            raise ValueError("invalid report id")
        return self.root / f"{report_id}.pdf"

    def save(self, report_id: str, data: bytes) -> Path:
        target = self.path_for(report_id)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(".pdf.tmp")
        tmp.write_bytes(data)
        tmp.replace(target)
        return target

    def exists(self, report_id: str) -> bool:
        return self.path_for(report_id).is_file()
