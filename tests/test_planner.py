"""
Tests for backup planning.

What local artifacts a remote file maps to, and when they count as stale.
"""

import hashlib
import tempfile
from pathlib import Path

import pytest

from drive_backup.backup.planner import export_bak_name, is_supported, needs_backup, variants_for
from drive_backup.backup.variants import VariantKind, read_marker_modified_time, render_redirect
from drive_backup.drive.models import RemoteFile

DOC_MIME = "application/vnd.google-apps.document"
PDF_ONLY = {DOC_MIME: ["application/pdf"]}


def raw_file(name="notes.txt", content=b"hello", parent_path="", mime_type="text/plain"):
    return RemoteFile(
        id="raw1",
        name=name,
        mime_type=mime_type,
        parent_path=parent_path,
        md5=hashlib.md5(content).hexdigest(),
        link="https://drive.google.com/file/d/raw1/view",
        size=len(content),
        modified_time=1000,
    )


def doc_file(name="Doc", parent_path="", modified_time=5000):
    return RemoteFile(
        id="doc1",
        name=name,
        mime_type=DOC_MIME,
        parent_path=parent_path,
        link="https://docs.google.com/document/d/doc1/edit",
        modified_time=modified_time,
    )


def materialize(variants, remote_file):
    """Write every variant the way a successful download pass would."""
    for variant in variants:
        variant.local_file_path.parent.mkdir(parents=True, exist_ok=True)
        if variant.kind == VariantKind.REDIRECT:
            variant.local_file_path.write_text(
                render_redirect(remote_file.name, remote_file.link, remote_file.modified_time),
                encoding="utf-8",
            )
        else:
            variant.local_file_path.write_bytes(b"exported")


class TestVariantsFor:
    """Tests for variants_for() - remote file to local artifacts."""

    @pytest.fixture
    def temp_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_raw_file_single_variant(self, temp_dir):
        variants = variants_for(raw_file(parent_path="a/b"), temp_dir)
        assert len(variants) == 1
        assert variants[0].kind == VariantKind.RAW
        assert variants[0].local_file_path == temp_dir / "a/b/notes.txt"
        assert variants[0].local_dir_path == temp_dir / "a/b"
        assert variants[0].display_path == "a/b/notes.txt"

    def test_document_exports_then_redirect(self, temp_dir):
        variants = variants_for(doc_file(parent_path="x"), temp_dir)
        kinds = [v.kind for v in variants]
        assert kinds[-1] == VariantKind.REDIRECT
        assert all(k == VariantKind.EXPORT for k in kinds[:-1])
        assert variants[0].local_file_path == temp_dir / "x/Doc.bak.pdf"
        assert variants[0].export_format == "application/pdf"
        assert variants[-1].local_file_path == temp_dir / "x/Doc.html"

    def test_all_configured_formats_exported(self, temp_dir):
        variants = variants_for(doc_file(), temp_dir)
        names = [v.local_file_path.name for v in variants]
        assert names == ["Doc.bak.pdf", "Doc.bak.docx", "Doc.bak.odt", "Doc.bak.zip", "Doc.bak.txt", "Doc.html"]

    def test_export_paths_keep_disambiguation_suffix(self, temp_dir):
        doc = doc_file()
        doc.unique_name_index = 1
        variants = variants_for(doc, temp_dir, PDF_ONLY)
        assert [v.local_file_path.name for v in variants] == ["Doc, (1).bak.pdf", "Doc, (1).html"]

    def test_repo_link_variant(self, temp_dir):
        pointer = raw_file(name="tool.git.json", parent_path="code", mime_type="application/json")
        variants = variants_for(pointer, temp_dir)
        assert len(variants) == 1
        assert variants[0].kind == VariantKind.REPO_LINK
        assert variants[0].local_file_path == temp_dir / "code/tool.git.json"
        assert variants[0].repo_dir_path == temp_dir / "code/tool"

    @pytest.mark.parametrize("mime_type", [
        "application/vnd.google-apps.form",
        "application/vnd.google-apps.map",
        "application/vnd.google-apps.site",
        "application/vnd.google-apps.unknown-future-type",
    ])
    def test_unsupported_native_types_have_no_variants(self, temp_dir, mime_type):
        remote = RemoteFile(id="n", name="thing", mime_type=mime_type)
        assert not is_supported(remote)
        assert variants_for(remote, temp_dir) == []
        assert needs_backup(remote, temp_dir) is False

    def test_export_bak_name(self):
        assert export_bak_name("a/Sheet", "text/csv") == "a/Sheet.bak.csv"


class TestNeedsBackupRaw:
    """Tests for needs_backup() on raw files - content hash decides."""

    @pytest.fixture
    def temp_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_missing_local_file_is_stale(self, temp_dir):
        assert needs_backup(raw_file(), temp_dir)

    def test_matching_hash_is_fresh(self, temp_dir):
        (temp_dir / "notes.txt").write_bytes(b"hello")
        assert not needs_backup(raw_file(content=b"hello"), temp_dir)

    def test_changed_content_is_stale(self, temp_dir):
        (temp_dir / "notes.txt").write_bytes(b"old content")
        assert needs_backup(raw_file(content=b"new content"), temp_dir)

    def test_unknown_remote_hash_is_stale(self, temp_dir):
        (temp_dir / "notes.txt").write_bytes(b"hello")
        remote = raw_file()
        remote.md5 = None
        assert needs_backup(remote, temp_dir)

    def test_repo_link_always_stale(self, temp_dir):
        content = b'{"url": "https://example.invalid/tool.git"}'
        (temp_dir / "tool.git.json").write_bytes(content)
        pointer = raw_file(name="tool.git.json", content=content, mime_type="application/json")
        assert needs_backup(pointer, temp_dir)


class TestNeedsBackupExport:
    """Tests for needs_backup() on exported documents - redirect marker decides."""

    @pytest.fixture
    def temp_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_no_marker_is_stale(self, temp_dir):
        assert needs_backup(doc_file(), temp_dir, PDF_ONLY)

    def test_matching_marker_is_fresh(self, temp_dir):
        doc = doc_file()
        materialize(variants_for(doc, temp_dir, PDF_ONLY), doc)
        assert not needs_backup(doc, temp_dir, PDF_ONLY)

    def test_newer_remote_is_stale(self, temp_dir):
        doc = doc_file(modified_time=5000)
        materialize(variants_for(doc, temp_dir, PDF_ONLY), doc)
        assert needs_backup(doc_file(modified_time=6000), temp_dir, PDF_ONLY)

    def test_missing_export_is_stale(self, temp_dir):
        doc = doc_file()
        variants = variants_for(doc, temp_dir, PDF_ONLY)
        materialize(variants, doc)
        variants[0].local_file_path.unlink()
        assert needs_backup(doc, temp_dir, PDF_ONLY)

    def test_unknown_remote_time_is_stale(self, temp_dir):
        doc = doc_file()
        materialize(variants_for(doc, temp_dir, PDF_ONLY), doc)
        doc.modified_time = None
        assert needs_backup(doc, temp_dir, PDF_ONLY)

    def test_marker_without_timestamp_is_stale(self, temp_dir):
        doc = doc_file()
        variants = variants_for(doc, temp_dir, PDF_ONLY)
        materialize(variants, doc)
        variants[-1].local_file_path.write_text("<html>no marker</html>", encoding="utf-8")
        assert needs_backup(doc, temp_dir, PDF_ONLY)


class TestStalenessIdempotence:
    """Decisions don't change until the remote or the local tree does."""

    @pytest.fixture
    def temp_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_repeated_checks_agree(self, temp_dir):
        doc = doc_file()
        materialize(variants_for(doc, temp_dir, PDF_ONLY), doc)
        assert needs_backup(doc, temp_dir, PDF_ONLY) is False
        assert needs_backup(doc, temp_dir, PDF_ONLY) is False

    def test_fresh_after_materializing(self, temp_dir):
        doc = doc_file()
        assert needs_backup(doc, temp_dir, PDF_ONLY) is True
        materialize(variants_for(doc, temp_dir, PDF_ONLY), doc)
        assert needs_backup(doc, temp_dir, PDF_ONLY) is False


class TestRedirectMarker:
    """Tests for the redirect marker page."""

    @pytest.fixture
    def temp_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_marker_round_trips_modified_time(self, temp_dir):
        path = temp_dir / "Doc.html"
        path.write_text(render_redirect("Doc", "https://docs.google.com/x", 1614834367000), encoding="utf-8")
        assert read_marker_modified_time(path) == 1614834367000

    def test_marker_escapes_title_and_link(self):
        page = render_redirect("<b>Doc</b>", 'https://x/?a=1&b="2"', 1)
        assert "<b>Doc</b>" not in page
        assert "&lt;b&gt;Doc&lt;/b&gt;" in page
        assert "&amp;b=&quot;2&quot;" in page

    def test_missing_marker_has_no_time(self, temp_dir):
        assert read_marker_modified_time(temp_dir / "nope.html") is None

    def test_timestamp_lookalike_in_title_or_link_ignored(self, temp_dir):
        doc = doc_file(name="modifiedTime=1", modified_time=5000)
        doc.link = "https://docs.google.com/document/d/doc1/edit?modifiedTime:2"
        materialize(variants_for(doc, temp_dir, PDF_ONLY), doc)

        assert read_marker_modified_time(temp_dir / "modifiedTime=1.html") == 5000
        assert not needs_backup(doc, temp_dir, PDF_ONLY)
