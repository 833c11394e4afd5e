"""
crudkit Backend — File & Image Service Unit Tests
==================================================

What:  Tests for FileService validation (extension, size, MIME type),
       storage layout, and ImageService avatar variants.
Why:   File validation is a critical security boundary; must be thoroughly tested.
How:   Temporary storage roots per test; MIME detection is patched where the
       content is not a real image.

Test Strategy:
    ✅ Allowed extensions (.jpg, .jpeg, .png, .webp), case-insensitive
    ✅ Rejected extensions (.gif, .pdf, .exe, none)
    ✅ Size limits (boundary at max_file_size, empty files)
    ✅ Per-user directory layout with generated file names
    ✅ Resized variants written next to the original
"""

from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from crudkit.exceptions import FileStorageError, ValidationError
from crudkit.services.file_service import FileService, StoredFile, UploadOptions
from crudkit.services.image_service import ImageService

MAX_SIZE = 1_048_576


class TestFileValidation:
    """Tests for file validation logic in FileService."""

    @pytest.fixture(autouse=True)
    def service(self, tmp_path):
        """Create a fresh FileService on a temporary root for each test."""
        self.service = FileService(storage_root=str(tmp_path), max_file_size=MAX_SIZE)

    # ── Extension Validation ──────────────────────────────────────────────

    def test_validate_extension_allowed(self):
        assert self.service.validate_extension("photo.jpg") == ".jpg"
        assert self.service.validate_extension("photo.jpeg") == ".jpeg"
        assert self.service.validate_extension("photo.png") == ".png"
        assert self.service.validate_extension("photo.webp") == ".webp"

    def test_validate_extension_uppercase(self):
        """Extension check should be case-insensitive."""
        assert self.service.validate_extension("photo.JPG") == ".jpg"
        assert self.service.validate_extension("photo.Png") == ".png"

    @pytest.mark.parametrize("filename", ["animation.gif", "document.pdf", "malware.exe", "noextension"])
    def test_validate_extension_rejected(self, filename):
        with pytest.raises(ValidationError, match="not supported") as exc_info:
            self.service.validate_extension(filename)
        assert exc_info.value.field == "file"

    # ── Size Validation ───────────────────────────────────────────────────

    def test_validate_size_within_limit(self):
        self.service.validate_size(None, 1000)

    def test_validate_size_at_limit(self):
        """Exactly max_file_size should pass (limit is inclusive)."""
        self.service.validate_size(MAX_SIZE, MAX_SIZE)

    def test_validate_size_over_limit(self):
        with pytest.raises(ValidationError, match="exceeds maximum"):
            self.service.validate_size(None, MAX_SIZE + 1)

    def test_validate_size_reported_length_over_limit(self):
        """A too-large Content-Length is rejected before counting bytes."""
        with pytest.raises(ValidationError, match="exceeds maximum"):
            self.service.validate_size(MAX_SIZE + 1, 10)

    def test_validate_size_empty_file(self):
        with pytest.raises(ValidationError, match="empty"):
            self.service.validate_size(0, 0)

    # ── MIME Validation ───────────────────────────────────────────────────

    def test_validate_mime_type_rejects_text(self):
        with patch("crudkit.services.file_service.magic.from_buffer", return_value="text/plain"):
            with pytest.raises(ValidationError, match="not supported"):
                self.service.validate_mime_type(b"hello")

    def test_validate_mime_type_detection_failure(self):
        with patch("crudkit.services.file_service.magic.from_buffer", side_effect=RuntimeError("boom")):
            with pytest.raises(FileStorageError):
                self.service.validate_mime_type(b"hello")

    # ── Storage ───────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_save_upload_uses_user_directory(self, sample_image_bytes):
        """Uploads land in <path>/<prefix>/<user_id>/ with a generated name."""
        options = UploadOptions(path="avatar", prefix="user", user_id="u-1")

        with patch("crudkit.services.file_service.magic.from_buffer", return_value="image/jpeg"):
            stored = await self.service.save_upload(
                "../../etc/passwd.jpg", sample_image_bytes, options, len(sample_image_bytes)
            )

        assert stored.relative_path.startswith("avatar/user/u-1/")
        assert stored.relative_path.endswith(".jpg")
        assert "passwd" not in stored.relative_path
        assert stored.mime_type == "image/jpeg"
        assert Path(stored.absolute_path).read_bytes() == sample_image_bytes

    @pytest.mark.asyncio
    async def test_save_upload_validates_before_writing(self, tmp_path):
        options = UploadOptions(path="avatar", prefix="user", user_id="u-1")

        with pytest.raises(ValidationError):
            await self.service.save_upload("notes.txt", b"text", options)

        assert not (tmp_path / "avatar").exists()

    # ── Cleanup ───────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_cleanup_file_removes_file(self, tmp_path):
        test_file = tmp_path / "test.jpg"
        test_file.write_bytes(b"test content")

        await self.service.cleanup_file(str(test_file))
        assert not test_file.exists()

    @pytest.mark.asyncio
    async def test_cleanup_file_nonexistent(self, tmp_path):
        """cleanup_file should not raise for non-existent files."""
        await self.service.cleanup_file(str(tmp_path / "nonexistent.jpg"))


class TestImageService:
    """Avatar variants are produced with Pillow next to the stored original."""

    @pytest.fixture(autouse=True)
    def services(self, tmp_path):
        self.file_service = FileService(storage_root=str(tmp_path), max_file_size=MAX_SIZE)
        self.image_service = ImageService(self.file_service)

    def store_png(self, size=(300, 200)) -> StoredFile:
        absolute, relative = self.file_service.build_path(
            UploadOptions(path="avatar", prefix="user", user_id="u-1"), "photo.png"
        )
        absolute.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color=(200, 30, 30)).save(absolute)
        return StoredFile(absolute_path=str(absolute), relative_path=relative, mime_type="image/png")

    @pytest.mark.asyncio
    async def test_resize_image_writes_every_size(self):
        stored = self.store_png()

        images = await self.image_service.resize_image(
            stored, {"small": [64, 64], "medium": [128, 128]}
        )

        assert images == {
            "original": "avatar/user/u-1/photo.png",
            "small": "avatar/user/u-1/photo-small.png",
            "medium": "avatar/user/u-1/photo-medium.png",
        }
        with Image.open(self.file_service.absolute(images["small"])) as small:
            # thumbnail keeps the aspect ratio inside the bounding box
            assert small.size == (64, 43)

    @pytest.mark.asyncio
    async def test_resize_image_rejects_undecodable_content(self):
        absolute, relative = self.file_service.build_path(
            UploadOptions(path="avatar", prefix="user", user_id="u-1"), "broken.png"
        )
        absolute.parent.mkdir(parents=True, exist_ok=True)
        absolute.write_bytes(b"not an image")
        stored = StoredFile(absolute_path=str(absolute), relative_path=relative, mime_type="image/png")

        with pytest.raises(ValidationError, match="not a readable image"):
            await self.image_service.resize_image(stored, {"small": [64, 64]})

    @pytest.mark.asyncio
    async def test_cleanup_removes_variants(self):
        stored = self.store_png()
        images = await self.image_service.resize_image(stored, {"small": [32, 32]})

        await self.image_service.cleanup(images)

        for relative in images.values():
            assert not self.file_service.absolute(relative).exists()
