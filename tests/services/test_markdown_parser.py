"""Tests for the markdown resource parser."""
# pylint: disable=missing-function-docstring

from bible_study_engine.services.markdown_parser import (
    parse_notes,
    parse_questions,
    parse_scripture_verses,
    parse_search_markdown,
    parse_word_links,
)

NUMBERED_NOTES = """## 1. For God so loved
The word "so" means "in this way".

## 2. the world
**Reference**: John 3:16
**Quote**: the world
People in the world.
"""

TN_NOTES = """# front:intro
Introduction to John.

# 3:16
For God so loved the world.
"""

SEARCH_MARKDOWN = """---
total: 2
byTestament:
  NT: 2
byBook:
  John: 2
---
**John 3:16** For God so loved the world
**John 15:13** Greater love has no one than this
"""


def test_numbered_sections_become_notes() -> None:
    notes = parse_notes(NUMBERED_NOTES, "John 3:16")
    assert len(notes) == 2
    assert notes[0].title == "For God so loved"
    assert notes[0].content == 'The word "so" means "in this way".'
    assert notes[1].reference == "John 3:16"
    assert notes[1].quote == "the world"
    assert notes[1].content == "People in the world."


def test_chapter_verse_headings_start_sections() -> None:
    notes = parse_notes(TN_NOTES, "John 3:16")
    assert [note.reference for note in notes] == ["John front:intro", "John 3:16"]
    assert notes[0].content == "Introduction to John."
    assert notes[1].content == "For God so loved the world."


def test_unstructured_markdown_is_one_resource() -> None:
    text = "  Just plain commentary about grace.\nNo headings here.  "
    notes = parse_notes(text, "Ephesians 2:8")
    assert len(notes) == 1
    assert notes[0].content == text.strip()
    assert notes[0].reference == "Ephesians 2:8"


def test_empty_sections_keep_heading_as_content() -> None:
    notes = parse_notes("## 1. Only a heading\n## 2. Another heading", "John 1")
    assert [note.content for note in notes] == ["Only a heading", "Another heading"]


def test_empty_markdown_yields_nothing() -> None:
    assert not parse_notes("   \n", "John 1")
    assert not parse_questions("", "John 1")
    assert not parse_word_links("", "John 1")


def test_question_answer_pairs() -> None:
    text = (
        "**Q:** Why did God send his Son? **A:** So that the world might be saved.\n"
        "**Q:** Who believes? **A:** Whoever trusts in him."
    )
    questions = parse_questions(text, "John 3:17")
    assert len(questions) == 2
    assert questions[0].question == "Why did God send his Son?"
    assert questions[0].response == "So that the world might be saved."
    assert questions[1].content == "Whoever trusts in him."


def test_questions_from_field_markers() -> None:
    text = (
        "**Reference**: John 3:16\n**Question**: What did God give?\n**Response**: His Son.\n"
        "**Reference**: John 3:17\n**Question**: Why was the Son sent?\n**Response**: To save."
    )
    questions = parse_questions(text, "John 3")
    assert [q.reference for q in questions] == ["John 3:16", "John 3:17"]
    assert questions[0].response == "His Son."


def test_word_links_from_links_and_bold() -> None:
    text = "- [love](rc://en/tw/dict/bible/kt/love)\n- **grace**\nplain line"
    links = parse_word_links(text, "John 3:16")
    assert [link.term for link in links] == ["love", "grace"]
    assert links[0].reference == "John 3:16"


def test_word_links_without_markers_fall_back_to_document() -> None:
    links = parse_word_links("nothing linked here", "John 3:16")
    assert len(links) == 1
    assert links[0].content == "nothing linked here"


def test_search_markdown_statistics_and_matches() -> None:
    scraped = parse_search_markdown(SEARCH_MARKDOWN)
    assert scraped.total == 2
    assert scraped.by_testament == {"NT": 2}
    assert scraped.by_book == {"John": 2}
    assert [(m.book, m.chapter, m.verse) for m in scraped.matches] == [("John", 3, 16), ("John", 15, 13)]
    assert scraped.matches[0].text == "For God so loved the world"


def test_scripture_verses_from_bold_numbers() -> None:
    verses = parse_scripture_verses("**16** For God so loved\n**17** For God did not send")
    assert [(v.number, v.text) for v in verses] == [(16, "For God so loved"), (17, "For God did not send")]


def test_scripture_verses_from_usfm() -> None:
    verses = parse_scripture_verses("\\v 1 In the beginning \\v 2 The earth was empty")
    assert [(v.number, v.text) for v in verses] == [(1, "In the beginning"), (2, "The earth was empty")]


def test_scripture_without_markers_is_one_verse() -> None:
    verses = parse_scripture_verses("In the beginning was the Word")
    assert len(verses) == 1
    assert verses[0].number == 1


def test_text_before_the_first_field_record_is_kept() -> None:
    text = "Intro: the Gospel of John was written late.\n\n**Reference**: John 3:16\nGod so loved"
    notes = parse_notes(text, "John 3")
    assert [(note.reference, note.content) for note in notes] == [
        ("John 3", "Intro: the Gospel of John was written late."),
        ("John 3:16", "God so loved"),
    ]
    assert notes[0].id == "tn-0"


def test_text_before_numbered_sections_is_kept() -> None:
    notes = parse_notes("Translation notes for John 3.\n\n" + NUMBERED_NOTES, "John 3:16")
    assert len(notes) == 3
    assert notes[0].content == "Translation notes for John 3."
    assert notes[1].title == "For God so loved"


def test_question_overview_is_kept() -> None:
    text = "Overview of the chapter.\n\n# Who came to Jesus at night?\nNicodemus."
    questions = parse_questions(text, "John 3")
    assert [(q.title, q.content) for q in questions] == [
        ("John 3", "Overview of the chapter."),
        ("Who came to Jesus at night?", "Nicodemus."),
    ]
    assert questions[0].question is None
    assert questions[1].response == "Nicodemus."


def test_text_before_question_answer_pairs_is_kept() -> None:
    text = "Questions for John 3:16.\n**Q:** What did God give? **A:** His Son."
    questions = parse_questions(text, "John 3:16")
    assert [q.content for q in questions] == ["Questions for John 3:16.", "His Son."]
    assert [q.id for q in questions] == ["tq-0", "tq-1"]
