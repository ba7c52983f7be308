"""
Tests for document file storage.
"""
import io

from django.core.files.uploadedfile import SimpleUploadedFile

from apps.docs.storage import FileStorage, storage_name


class TestStorageName:
    def test_adds_dot(self):
        assert storage_name("abc", "pdf") == "abc.pdf"

    def test_lowercases_extension(self):
        assert storage_name("abc", ".TXT") == "abc.txt"


class TestFileStorage:
    """Tests for FileStorage."""

    def test_creates_root(self, tmp_path):
        root = tmp_path / "nested" / "uploads"

        FileStorage(root=root)

        assert root.is_dir()

    def test_save_uploaded_file(self, tmp_path):
        storage = FileStorage(root=tmp_path)
        upload = SimpleUploadedFile("terms.txt", b"Refunds are allowed.", content_type="text/plain")

        name = storage.save("doc-1", ".txt", upload)

        assert name == "doc-1.txt"
        assert storage.get_path(name).read_bytes() == b"Refunds are allowed."

    def test_save_plain_file_object(self, tmp_path):
        storage = FileStorage(root=tmp_path)

        name = storage.save("doc-2", ".pdf", io.BytesIO(b"%PDF-1.7"))

        assert storage.get_path(name).read_bytes() == b"%PDF-1.7"

    def test_copy_from(self, tmp_path):
        source = tmp_path / "Notes.TXT"
        source.write_bytes(b"meeting notes")
        storage = FileStorage(root=tmp_path / "uploads")

        name = storage.copy_from("doc-3", source)

        assert name == "doc-3.txt"
        assert storage.get_path(name).read_bytes() == b"meeting notes"

    def test_delete(self, tmp_path):
        storage = FileStorage(root=tmp_path)
        name = storage.save("doc-4", ".txt", io.BytesIO(b"x"))

        assert storage.delete(name) is True
        assert not storage.get_path(name).exists()
        assert storage.delete(name) is False
