from __future__ import annotations

import io

import pytest

from codesensei.errors import InvalidUploadError
from codesensei.ingestion import (
    MAX_FILE_BYTES,
    MAX_INDEXED_FILES,
    collect_files,
    detect_stack,
    extension_of,
    files_from_uploads,
    files_from_zip,
    is_text_path,
    normalize_path,
    select_entries,
)
from codesensei.models import FileRecord, TreeEntry
from helpers import make_zip


class Upload:
    def __init__(self, filename: str, data: bytes) -> None:
        self.filename = filename
        self._data = data

    def read(self) -> bytes:
        return self._data


def test_extension_is_case_insensitive_and_taken_after_last_dot() -> None:
    assert extension_of("src/App.TSX") == "tsx"
    assert extension_of("archive.tar.gz") == "gz"
    assert extension_of("Makefile") == ""
    assert extension_of("some.dir/LICENSE") == ""
    assert is_text_path("docs/README.MD")
    assert not is_text_path("assets/logo.png")


def test_normalize_path_drops_dot_segments_and_backslashes() -> None:
    assert normalize_path("./src\\utils//a.py") == "src/utils/a.py"
    assert normalize_path("/../etc/x.md") == "etc/x.md"


def test_select_entries_filters_directories_and_extensions_in_discovery_order() -> None:
    entries = [
        TreeEntry(path="src", type="tree"),
        TreeEntry(path="src/b.ts"),
        TreeEntry(path="image.png"),
        TreeEntry(path="a.py"),
        TreeEntry(path="notes.json", type="tree"),
    ]

    assert [entry.path for entry in select_entries(entries)] == ["src/b.ts", "a.py"]


def test_select_entries_caps_at_fifty_of_five_hundred() -> None:
    entries = [TreeEntry(path=f"pkg/module_{i:03d}.py") for i in range(500)]

    selected = select_entries(entries)

    assert len(selected) == MAX_INDEXED_FILES == 50
    assert selected[0].path == "pkg/module_000.py"
    assert selected[-1].path == "pkg/module_049.py"


def test_cap_applies_after_filtering() -> None:
    entries = [TreeEntry(path=f"bin/blob_{i}.bin") for i in range(60)]
    entries.append(TreeEntry(path="main.go"))

    assert [entry.path for entry in select_entries(entries)] == ["main.go"]


def test_collect_files_skips_failed_fetch_and_keeps_order() -> None:
    entries = [TreeEntry(path="a.py", size=1), TreeEntry(path="b.py", size=2), TreeEntry(path="c.py", size=3)]

    def fetch(entry: TreeEntry) -> str:
        if entry.path == "b.py":
            raise ConnectionError("boom")
        return entry.path.upper()

    result = collect_files(entries, fetch)
    clean = collect_files(entries, lambda entry: entry.path.upper())

    assert [record.path for record in result.files] == ["a.py", "c.py"]
    assert result.failed == ["b.py"]
    assert result.skipped == 1
    assert result.files == [record for record in clean.files if record.path != "b.py"]
    assert result.files[1] == FileRecord(path="c.py", content="C.PY", size=3)


def test_collect_files_never_fetches_beyond_cap() -> None:
    entries = [TreeEntry(path=f"f{i}.md") for i in range(120)]
    fetched = []

    def fetch(entry: TreeEntry) -> str:
        fetched.append(entry.path)
        return "x"

    result = collect_files(entries, fetch)

    assert len(result.files) == 50
    assert len(fetched) == 50


def test_zip_strips_shared_root_and_drops_directories_and_binaries() -> None:
    archive = make_zip({
        "demo-main/": "",
        "demo-main/src/app.py": "print('hi')\n",
        "demo-main/README.md": "# Demo\n",
        "demo-main/logo.png": b"\x89PNG",
    })

    files = files_from_zip(archive)

    assert [record.path for record in files] == ["src/app.py", "README.md"]
    assert files[0].content == "print('hi')\n"
    assert files[0].size == len(b"print('hi')\n")


def test_zip_without_shared_root_keeps_paths() -> None:
    archive = make_zip({"a.py": "A", "lib/b.ts": "B"})

    assert [record.path for record in files_from_zip(archive)] == ["a.py", "lib/b.ts"]


def test_zip_replaces_undecodable_bytes() -> None:
    archive = make_zip({"data.json": b'{"k": "\xff"}'})

    (record,) = files_from_zip(archive)

    assert "�" in record.content


def test_corrupt_zip_raises_invalid_upload() -> None:
    with pytest.raises(InvalidUploadError):
        files_from_zip(io.BytesIO(b"not a zip"))


def test_zip_caps_member_count() -> None:
    archive = make_zip({f"src/m{i}.js": "x" for i in range(70)})

    assert len(files_from_zip(archive)) == 50


def test_folder_upload_uses_relative_paths() -> None:
    uploads = [
        Upload("proj/src/index.ts", b"export {}"),
        Upload("proj/package.json", b"{}"),
        Upload("proj/dist/bundle.bin", b"\x00"),
        Upload("", b"ignored"),
    ]

    files = files_from_uploads(uploads)

    assert [record.path for record in files] == ["src/index.ts", "package.json"]
    assert files[0].content == "export {}"


def test_detect_stack_ranks_by_file_count() -> None:
    files = [
        FileRecord(path="a.py", content=""),
        FileRecord(path="b.py", content=""),
        FileRecord(path="c.ts", content=""),
        FileRecord(path="README.md", content=""),
    ]

    assert detect_stack(files) == ["Python", "TypeScript"]


def test_zip_skips_members_over_size_limit() -> None:
    archive = make_zip({
        "proj/huge.json": "x" * (MAX_FILE_BYTES + 1),
        "proj/small.py": "ok = True",
    })

    files = files_from_zip(archive)

    assert [record.path for record in files] == ["small.py"]
