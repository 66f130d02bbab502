"""Load pre-computed file analyses from a JSON corpus file.

The corpus format is what an upstream analyzer emits::

    {
      "files": [
        {
          "path": "src/App.tsx",
          "content": "export default function App() {...}",
          "analysis": {"type": "component", "exports": [...], ...}
        }
      ]
    }

`hash` and `token_count` may be omitted; they are derived from the content.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from codectx.analysis.models import FileAnalysis, FileContent, FileUpdate
from codectx.context.models import TokenEstimator
from codectx.exceptions import CorpusError


def content_hash(text: str) -> str:
    """Stable short hash for change detection."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def parse_corpus(data: Any, source: str = "<memory>") -> list[FileUpdate]:
    """Turn decoded corpus JSON into file updates."""
    entries = data.get("files") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise CorpusError(source, "expected a list of files or an object with a 'files' list")

    updates: list[FileUpdate] = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict) or "path" not in entry:
            raise CorpusError(source, f"entry {i} has no 'path'")

        path = entry["path"]
        text = entry.get("content", "")
        digest = entry.get("hash") or content_hash(text)

        analysis = None
        raw = entry.get("analysis")
        if raw is not None:
            raw = {"path": path, "hash": digest, **raw}
            try:
                analysis = FileAnalysis.model_validate(raw)
            except ValidationError as e:
                raise CorpusError(source, f"bad analysis for {path}: {e}") from e

        token_count = entry.get("token_count")
        if token_count is None:
            token_count = (
                analysis.token_count
                if analysis and analysis.token_count
                else TokenEstimator.estimate(text)
            )

        content = FileContent(
            path=path,
            content=text,
            hash=digest,
            token_count=token_count,
            last_modified=entry.get("last_modified", 0.0),
        )
        updates.append(FileUpdate(content=content, analysis=analysis))

    return updates


def load_corpus(path: str | Path) -> list[FileUpdate]:
    """Read and validate a corpus JSON file."""
    corpus_path = Path(path)
    try:
        data = json.loads(corpus_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise CorpusError(str(corpus_path), f"cannot read file ({e})") from e
    except json.JSONDecodeError as e:
        raise CorpusError(str(corpus_path), f"invalid JSON ({e})") from e
    return parse_corpus(data, source=str(corpus_path))
