from __future__ import annotations

import io
import json
from datetime import datetime, timezone

import pytest

from digrag.exceptions import DocumentParseError
from digrag.loader import ChangelogLoader, JsonlLoader, load_documents, load_path
from digrag.models import compute_content_hash

CHANGELOG = """\
Preamble text that belongs to no entry.
* First Entry 2025-01-15 10:00:00 [memo]:[worklog]:
・First line
\t・Second line (indented)

* Second Entry 2025-01-14 09:00:00 [rust]:
Second content
"""


def test_changelog_entries_are_parsed():
    docs = ChangelogLoader().load_from_string(CHANGELOG)

    assert [doc.title for doc in docs] == ["First Entry", "Second Entry"]
    assert docs[0].tags == ["memo", "worklog"]
    assert docs[0].text == "・First line\n\t・Second line (indented)"
    assert docs[0].date == datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
    assert docs[1].tags == ["rust"]
    assert docs[1].text == "Second content"


def test_changelog_ids_are_content_hashes():
    doc = ChangelogLoader().load_from_string("* Entry 2025-01-15 10:00:00 [memo]:\nBody")[0]

    assert doc.id == compute_content_hash("Entry", "Body")


def test_changelog_entry_without_tags():
    docs = ChangelogLoader().load_from_string("* Entry Without Tags 2025-01-15 10:00:00 \nContent")

    assert len(docs) == 1
    assert docs[0].title == "Entry Without Tags"
    assert docs[0].tags == []


def test_changelog_invalid_date_drops_entry():
    content = "* Broken 2025-13-45 10:00:00 [memo]:\nx\n* Fine 2025-01-15 10:00:00 [memo]:\ny"

    docs = ChangelogLoader().load_from_string(content)

    assert [doc.title for doc in docs] == ["Fine"]


def test_changelog_empty_input():
    assert ChangelogLoader().load_from_string("") == []


def test_changelog_missing_file(tmp_path):
    with pytest.raises(DocumentParseError):
        ChangelogLoader().load_from_file(tmp_path / "missing.txt")


def _jsonl_line(doc_id: str, title: str) -> str:
    return json.dumps(
        {
            "id": doc_id,
            "metadata": {"title": title, "date": "2025-01-15T10:00:00Z", "tags": ["memo"]},
            "text": f"{title} content",
        },
        ensure_ascii=False,
    )


def test_jsonl_skips_blank_and_comment_lines():
    content = "\n".join(
        ["# exported memos", _jsonl_line("doc1", "First"), "", _jsonl_line("doc2", "Second")]
    )

    docs = JsonlLoader().load_from_string(content)

    assert [doc.id for doc in docs] == ["doc1", "doc2"]
    assert docs[0].tags == ["memo"]
    assert docs[1].text == "Second content"


def test_jsonl_error_names_the_line():
    content = "\n".join([_jsonl_line("doc1", "First"), "", "{broken"])

    with pytest.raises(DocumentParseError, match="line 3"):
        JsonlLoader().load_from_string(content)


def test_jsonl_missing_fields_are_errors():
    with pytest.raises(DocumentParseError, match="line 1"):
        JsonlLoader().load_from_string('{"id": "doc1"}')


def test_load_path_dispatches_on_suffix_and_walks_directories(tmp_path):
    (tmp_path / "memos").mkdir()
    (tmp_path / "memos" / "changelog.txt").write_text(
        "* Entry 2025-01-15 10:00:00 [memo]:\nBody\n", encoding="utf-8"
    )
    (tmp_path / "memos" / "export.jsonl").write_text(
        _jsonl_line("doc1", "Exported"), encoding="utf-8"
    )
    (tmp_path / "memos" / ".hidden").write_text("* Hidden 2025-01-15 10:00:00\nx", encoding="utf-8")

    docs = load_path(tmp_path / "memos")

    assert [doc.title for doc in docs] == ["Entry", "Exported"]


def test_load_path_reads_stdin_marker():
    stdin = io.StringIO(_jsonl_line("doc1", "Piped") + "\n")

    docs = load_path("-", stdin=stdin)

    assert [doc.id for doc in docs] == ["doc1"]


def test_load_documents_concatenates_inputs(tmp_path):
    first = tmp_path / "a.jsonl"
    second = tmp_path / "b.jsonl"
    first.write_text(_jsonl_line("doc1", "A"), encoding="utf-8")
    second.write_text(_jsonl_line("doc2", "B"), encoding="utf-8")

    docs = load_documents([first, second])

    assert [doc.id for doc in docs] == ["doc1", "doc2"]


def test_missing_input_is_an_error(tmp_path):
    with pytest.raises(DocumentParseError, match="Input not found"):
        load_path(tmp_path / "nope.txt")


@pytest.mark.parametrize("field, value", [("text", None), ("text", 42), ("title", None)])
def test_jsonl_non_string_fields_are_errors(field, value):
    record = json.loads(_jsonl_line("doc1", "First"))
    if field == "title":
        record["metadata"]["title"] = value
    else:
        record[field] = value

    with pytest.raises(DocumentParseError, match="line 1"):
        JsonlLoader().load_from_string(json.dumps(record))


def test_jsonl_missing_text_defaults_to_empty():
    record = json.loads(_jsonl_line("doc1", "First"))
    del record["text"]

    assert JsonlLoader().load_from_string(json.dumps(record))[0].text == ""
