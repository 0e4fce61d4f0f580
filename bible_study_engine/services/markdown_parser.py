"""Best-effort scraping of the upstream's markdown into typed resources.

The translation-helps API answers some requests with loosely structured
markdown instead of JSON. The helpers here split such documents into
discrete resources using the conventions the upstream is known to emit:

* numbered section headings (``## 1. Title``)
* translation-note chapter/verse headings (``# front:intro``, ``# 3:intro``, ``# 3:16``)
* bold field markers (``**Reference**: John 3:16``, ``**Quote**:``, ``**ID**:``)

There is no grammar behind this format. Whatever happens, content is never
dropped: a non-empty document with no recognizable sections becomes a single
resource whose content is the whole (trimmed) document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from bible_study_engine.core.models import (
    ScriptureVerse,
    TranslationNote,
    TranslationQuestion,
    TranslationWord,
    VerseMatch,
)
from bible_study_engine.services.references import book_from_reference, is_scripture_reference

_FRONTMATTER = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)
_NUMBERED_HEADING = re.compile(r"^#{2,4}\s+(\d+)\.\s*(.*?)\s*#*\s*$")
_HEADING = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$")
_NUMBERED_LINE = re.compile(r"^(\d+)\.\s+(.*)$")
_TN_HEADER = re.compile(
    r"^(?:front\s*:\s*intro|\d+\s*:\s*intro|\d+\s*:\s*\d+(?:\s*-\s*\d+)?)$", re.IGNORECASE
)
_FIELD_LINE = re.compile(r"^\s*(?:[-*]\s+)?\*\*([A-Za-z][A-Za-z ]*?)\s*:?\*\*\s*:?\s*(.*)$")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_BOLD = re.compile(r"\*\*([^*]+)\*\*")
_QA_PAIR = re.compile(
    r"\*\*Q:?\*\*:?\s*(.+?)\s*\*\*A:?\*\*:?\s*(.+?)\s*(?=\*\*Q:?\*\*|\Z)", re.DOTALL
)
_BOLD_MATCH = re.compile(r"\*\*(.+?)\s+(\d+):(\d+)\*\*\s+(.+?)(?=\n\s*\*\*|\n---|\Z)", re.DOTALL)
_DASH_MATCH = re.compile(r"^\s*-\s+(.+?)\s+(\d+):(\d+):?\s+(.+)$", re.MULTILINE)
_VERSE_LINE = re.compile(r"^\s*(?:\*\*)?(\d+)(?:\*\*)?\s+([^\s*\d][^\n]*)$")
_USFM_VERSE = re.compile(r"\\v\s+(\d+)\s+([^\\]+)")

KNOWN_FIELDS = frozenset(
    {
        "reference",
        "quote",
        "id",
        "question",
        "response",
        "answer",
        "term",
        "definition",
        "note",
        "title",
    }
)
RECORD_START_FIELDS = ("id", "reference")


@dataclass(slots=True)
class _Section:
    heading: str = ""
    lines: list[str] = field(default_factory=list)
    fields: dict[str, str] = field(default_factory=dict)
    raw: list[str] = field(default_factory=list)

    def body(self) -> str:
        return "\n".join(self.lines).strip()

    def raw_text(self) -> str:
        return "\n".join(self.raw).strip()


def _field(line: str) -> Optional[tuple[str, str]]:
    match = _FIELD_LINE.match(line)
    if not match:
        return None
    name = match.group(1).strip().lower()
    if name not in KNOWN_FIELDS:
        return None
    return name, match.group(2).strip()


def _strip_frontmatter(text: str) -> str:
    return _FRONTMATTER.sub("", text, count=1)


def _add_line(section: _Section, line: str) -> None:
    section.raw.append(line)
    parsed = _field(line)
    if parsed is not None:
        name, value = parsed
        section.fields.setdefault(name, value)
        return
    section.lines.append(line)


def _split_on(lines: list[str], heading_of: Callable[[str], Optional[str]]) -> tuple[str, list[_Section]]:
    """Split ``lines`` at every line ``heading_of`` recognizes.

    Returns the text preceding the first heading and the sections.
    """
    preamble: list[str] = []
    sections: list[_Section] = []
    current: Optional[_Section] = None
    for line in lines:
        heading = heading_of(line)
        if heading is not None:
            current = _Section(heading=heading, raw=[line])
            sections.append(current)
            continue
        if current is None:
            preamble.append(line)
        else:
            _add_line(current, line)
    return "\n".join(preamble).strip(), sections


def _numbered_heading(line: str) -> Optional[str]:
    match = _NUMBERED_HEADING.match(line)
    return match.group(2) if match else None


def _tn_heading(line: str) -> Optional[str]:
    match = _HEADING.match(line)
    if match and _TN_HEADER.match(match.group(1).strip()):
        return match.group(1).strip()
    return None


def _question_heading(line: str) -> Optional[str]:
    match = _HEADING.match(line)
    if match:
        return match.group(1).strip()
    numbered = _NUMBERED_LINE.match(line)
    if numbered:
        return numbered.group(2).strip()
    return None


def _split_on_fields(lines: list[str]) -> tuple[str, list[_Section]]:
    """Split at ``**ID**``/``**Reference**`` markers that open a new record.

    Like :func:`_split_on`, text before the first record comes back as the
    preamble.
    """
    preamble: list[str] = []
    sections: list[_Section] = []
    current: Optional[_Section] = None
    for line in lines:
        parsed = _field(line)
        starts_record = parsed is not None and parsed[0] in RECORD_START_FIELDS
        if starts_record and (current is None or parsed[0] in current.fields):  # type: ignore[index]
            current = _Section()
            sections.append(current)
        if current is None:
            preamble.append(line)
            continue
        _add_line(current, line)
    return "\n".join(preamble).strip(), sections


def _sections(text: str) -> tuple[str, list[_Section]]:
    lines = _strip_frontmatter(text).splitlines()
    for heading_of in (_numbered_heading, _tn_heading):
        preamble, sections = _split_on(lines, heading_of)
        if sections:
            return preamble, sections
    preamble, records = _split_on_fields(lines)
    return (preamble, records) if records else ("", [])


def _tn_reference(header: str, book: str, fallback: str) -> str:
    compact = re.sub(r"\s+", "", header)
    if compact.lower() == "front:intro":
        return f"{book} front:intro"
    if _TN_HEADER.match(header):
        return f"{book} {compact}"
    return fallback


def _content(section: _Section, *preferred: Optional[str]) -> str:
    for candidate in (*preferred, section.body(), section.heading):
        if candidate and candidate.strip():
            return candidate.strip()
    return section.raw_text()


def parse_notes(markdown: str, fallback_reference: str) -> list[TranslationNote]:
    """Split a translation-notes document into one note per section."""
    text = markdown.strip()
    if not text:
        return []
    book = book_from_reference(fallback_reference)
    preamble, sections = _sections(text)
    notes: list[TranslationNote] = []
    if preamble:
        notes.append(
            TranslationNote(
                id="tn-0", title=fallback_reference, content=preamble, reference=fallback_reference
            )
        )
    for section in sections:
        fields = section.fields
        reference = fields.get("reference")
        if not reference and section.heading:
            if _TN_HEADER.match(section.heading):
                reference = _tn_reference(section.heading, book, fallback_reference)
            elif is_scripture_reference(section.heading):
                reference = section.heading
        title = fields.get("title") or section.heading or fields.get("quote") or reference
        notes.append(
            TranslationNote(
                id=fields.get("id") or f"tn-{len(notes)}",
                title=title or fallback_reference,
                content=_content(section, fields.get("note")),
                reference=reference or fallback_reference,
                quote=fields.get("quote"),
            )
        )
    if not notes:
        return [
            TranslationNote(
                id="tn-0", title=fallback_reference, content=text, reference=fallback_reference
            )
        ]
    return notes


def _add_question_preamble(
    questions: list[TranslationQuestion], preamble: str, reference: str
) -> None:
    if preamble:
        questions.append(
            TranslationQuestion(
                id=f"tq-{len(questions)}", title=reference, content=preamble, reference=reference
            )
        )


def parse_questions(markdown: str, fallback_reference: str) -> list[TranslationQuestion]:
    """Split a translation-questions document into question/response pairs."""
    text = markdown.strip()
    if not text:
        return []
    questions: list[TranslationQuestion] = []
    pairs = list(_QA_PAIR.finditer(text))
    if pairs:
        _add_question_preamble(questions, text[: pairs[0].start()].strip(), fallback_reference)
    for match in pairs:
        question, answer = match.group(1).strip(), match.group(2).strip()
        questions.append(
            TranslationQuestion(
                id=f"tq-{len(questions)}",
                title=question,
                content=answer or question,
                reference=fallback_reference,
                question=question,
                response=answer or None,
            )
        )
    if questions:
        return questions

    lines = _strip_frontmatter(text).splitlines()
    preamble, sections = _split_on(lines, _numbered_heading)
    if not sections:
        preamble, sections = _split_on(lines, _question_heading)
    if not sections:
        preamble, sections = _split_on_fields(lines)
    if sections:
        _add_question_preamble(questions, preamble, fallback_reference)
    for section in sections:
        fields = section.fields
        question = fields.get("question") or section.heading
        response = fields.get("response") or fields.get("answer") or section.body() or None
        questions.append(
            TranslationQuestion(
                id=fields.get("id") or f"tq-{len(questions)}",
                title=question or fallback_reference,
                content=_content(section, response),
                reference=fields.get("reference") or fallback_reference,
                question=question or None,
                response=response,
            )
        )
    if not questions:
        return [
            TranslationQuestion(
                id="tq-0", title=fallback_reference, content=text, reference=fallback_reference
            )
        ]
    return questions


def parse_word_links(markdown: str, fallback_reference: str) -> list[TranslationWord]:
    """One word link per line carrying a ``[term](link)``, ``**term**`` or ``**Term**:``."""
    text = markdown.strip()
    if not text:
        return []
    links: list[TranslationWord] = []
    for line in _strip_frontmatter(text).splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        term: Optional[str] = None
        parsed = _field(stripped)
        if parsed is not None:
            if parsed[0] == "term" and parsed[1]:
                term = _LINK.sub(r"\1", parsed[1])
        elif link := _LINK.search(stripped):
            term = link.group(1)
        elif bold := _BOLD.search(stripped):
            term = bold.group(1)
        if not term:
            continue
        term = term.strip()
        links.append(
            TranslationWord(
                id=f"twl-{len(links)}",
                title=term,
                content=stripped,
                reference=fallback_reference,
                term=term,
            )
        )
    if not links:
        return [
            TranslationWord(
                id="twl-0", title=fallback_reference, content=text, reference=fallback_reference
            )
        ]
    return links


@dataclass(slots=True)
class SearchMarkdown:
    """Statistics and located matches scraped from a filter-mode response."""

    total: Optional[int] = None
    by_testament: dict[str, int] = field(default_factory=dict)
    by_book: dict[str, int] = field(default_factory=dict)
    matches: list[VerseMatch] = field(default_factory=list)


def _frontmatter_block(yaml_text: str, key: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    capturing = False
    for line in yaml_text.splitlines():
        if not capturing:
            capturing = line.strip() == f"{key}:"
            continue
        if not line.startswith((" ", "\t")):
            break
        entry = re.match(r"^\s+(.+?):\s*(\d+)\s*$", line)
        if entry:
            counts[entry.group(1).strip().strip("\"'")] = int(entry.group(2))
    return counts


def parse_search_markdown(markdown: str) -> SearchMarkdown:
    """Read YAML frontmatter statistics and ``**Book C:V** text`` matches."""
    result = SearchMarkdown()
    frontmatter = _FRONTMATTER.match(markdown.lstrip())
    body = markdown
    if frontmatter:
        yaml_text = frontmatter.group(1)
        total = re.search(r"^\s*total:\s*(\d+)", yaml_text, re.MULTILINE)
        if total:
            result.total = int(total.group(1))
        result.by_testament = _frontmatter_block(yaml_text, "byTestament")
        result.by_book = _frontmatter_block(yaml_text, "byBook")
        body = markdown.lstrip()[frontmatter.end() :]

    for pattern in (_BOLD_MATCH, _DASH_MATCH):
        for match in pattern.finditer(body):
            result.matches.append(
                VerseMatch(
                    book=match.group(1).strip(),
                    chapter=int(match.group(2)),
                    verse=int(match.group(3)),
                    text=" ".join(match.group(4).split()),
                )
            )
        if result.matches:
            break
    return result


def parse_scripture_verses(text: str) -> list[ScriptureVerse]:
    """Extract numbered verses from markdown or USFM scripture text.

    Falls back to a single verse holding the cleaned text.
    """
    verses: list[ScriptureVerse] = []
    for line in _strip_frontmatter(text).splitlines():
        if line.lstrip().startswith("#"):
            continue
        match = _VERSE_LINE.match(line)
        if match:
            verses.append(ScriptureVerse(number=int(match.group(1)), text=match.group(2).strip()))
    if verses:
        return verses
    if "\\v " in text:
        for match in _USFM_VERSE.finditer(text):
            verses.append(
                ScriptureVerse(number=int(match.group(1)), text=" ".join(match.group(2).split()))
            )
        if verses:
            return verses
    cleaned = re.sub(r"\\[a-z]+\d?\s*", "", text).replace("**", "").strip()
    if cleaned:
        verses.append(ScriptureVerse(number=1, text=cleaned))
    return verses


__all__ = [
    "SearchMarkdown",
    "parse_notes",
    "parse_questions",
    "parse_scripture_verses",
    "parse_search_markdown",
    "parse_word_links",
]
