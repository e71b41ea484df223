import pytest

from docportal.services.file_validation import (
    FileValidationError,
    ValidationKind,
    file_extension,
    validate_storage_key,
    validate_upload,
)


def _kind(**kwargs) -> ValidationKind:
    with pytest.raises(FileValidationError) as exc:
        validate_upload(**kwargs)
    return exc.value.kind


def test_valid_pdf_is_accepted():
    upload = validate_upload(filename="Report.PDF", content_type="application/pdf", size=1024)
    assert upload.file_name == "Report.PDF"
    assert upload.content_type == "application/pdf"
    assert upload.extension == ".pdf"
    assert upload.size == 1024


def test_content_type_parameters_are_ignored():
    upload = validate_upload(
        filename="notes.txt", content_type="Text/Plain; charset=utf-8", size=3
    )
    assert upload.content_type == "text/plain"


@pytest.mark.parametrize(
    "filename",
    ["../../../etc/passwd.pdf", "a/b.pdf", "a\\b.pdf", "C:evil.pdf", "..pdf"],
)
def test_path_traversal_names_are_rejected(filename):
    assert (
        _kind(filename=filename, content_type="application/pdf", size=10)
        == ValidationKind.path_traversal
    )


def test_executable_is_rejected_as_invalid_type():
    assert (
        _kind(filename="malware.exe", content_type="application/x-msdownload", size=10)
        == ValidationKind.invalid_type
    )


def test_extension_must_match_mime_type():
    assert (
        _kind(filename="photo.png", content_type="application/pdf", size=10)
        == ValidationKind.invalid_type
    )


def test_missing_extension_is_invalid_type():
    assert (
        _kind(filename="README", content_type="text/plain", size=10)
        == ValidationKind.invalid_type
    )


def test_disallowed_extension_with_allowed_mime():
    assert (
        _kind(filename="script.sh", content_type="text/plain", size=10)
        == ValidationKind.invalid_type
    )


def test_oversized_file_is_rejected():
    assert (
        _kind(filename="big.pdf", content_type="application/pdf", size=50 * 1024 * 1024 + 1)
        == ValidationKind.invalid_size
    )


def test_file_at_size_limit_is_accepted():
    upload = validate_upload(
        filename="big.pdf", content_type="application/pdf", size=50 * 1024 * 1024
    )
    assert upload.size == 50 * 1024 * 1024


def test_empty_file_is_rejected():
    assert (
        _kind(filename="empty.pdf", content_type="application/pdf", size=0)
        == ValidationKind.invalid_size
    )


def test_custom_max_size():
    assert (
        _kind(filename="a.pdf", content_type="application/pdf", size=11, max_size=10)
        == ValidationKind.invalid_size
    )


@pytest.mark.parametrize(
    "filename",
    ["", "   ", "CON.pdf", "lpt1.txt", "bad\x00name.pdf", "x" * 252 + ".pdf"],
)
def test_invalid_names(filename):
    assert (
        _kind(filename=filename, content_type="application/pdf", size=10)
        == ValidationKind.invalid_name
    )


def test_missing_filename_is_invalid_name():
    assert _kind(filename=None, content_type="application/pdf", size=10) == ValidationKind.invalid_name


def test_name_checks_run_before_type_checks():
    assert (
        _kind(filename="../evil.exe", content_type="application/x-msdownload", size=0)
        == ValidationKind.path_traversal
    )


def test_file_extension():
    assert file_extension("a.tar.GZ") == ".gz"
    assert file_extension("noext") == ""
    assert file_extension("trailing.") == ""


def test_validate_storage_key():
    assert validate_storage_key("_staging/file_123/abc.pdf") == "_staging/file_123/abc.pdf"
    for key in ("../x", "/abs/key", "C:\\x", "a/../b"):
        with pytest.raises(FileValidationError) as exc:
            validate_storage_key(key)
        assert exc.value.kind == ValidationKind.path_traversal
    with pytest.raises(FileValidationError):
        validate_storage_key("bad\nkey")
