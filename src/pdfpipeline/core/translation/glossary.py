"""
Glossary loading and enforcement.

Enforcement runs on every engine output (and on the untranslated fallback),
so glossary terms always win over whatever the engine produced.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..schemas.job import GlossaryMatch
from ..schemas.pipeline import GlossaryTerm
from ..storage.job_store import JobStore


@dataclass
class GlossaryResult:
    text: str
    matches: List[GlossaryMatch] = field(default_factory=list)


async def load_glossary(store: JobStore, glossary_id: Optional[str] = None) -> List[GlossaryTerm]:
    if not glossary_id:
        return []
    entries = await store.load_glossary_entries(glossary_id)
    return [GlossaryTerm(source=entry.source_term, target=entry.target_term) for entry in entries]


def enforce_glossary(text: str, glossary: Sequence[GlossaryTerm]) -> GlossaryResult:
    """
    Replace every whole-word, case-insensitive occurrence of each source term.

    Entries are applied in order, so a later entry sees the output of the
    earlier ones. Each matching entry is recorded once.
    """
    if not glossary or not text:
        return GlossaryResult(text=text)

    output = text
    matches = []
    for term in glossary:
        source = (term.source or "").strip()
        target = (term.target or "").strip()
        if not source or not target:
            continue

        pattern = re.compile(rf"\b{re.escape(source)}\b", re.IGNORECASE)
        if not pattern.search(output):
            continue

        output = pattern.sub(lambda _: target, output)
        matches.append(GlossaryMatch(source=source, target=target))

    return GlossaryResult(text=output, matches=matches)
