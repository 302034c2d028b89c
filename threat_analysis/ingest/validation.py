"""Upload checks applied before any decompression or parsing."""

from typing import Optional

from ..errors import ValidationError

ALLOWED_EXTENSIONS = frozenset({'.log', '.txt', '.zip', '.gz'})
MAX_FILE_SIZE = 100 * 1024 * 1024  # 100 MiB


def file_extension(file_name: str) -> str:
    """Lower-cased text after the last dot, with the dot ('.gz' for 'a.tar.gz')."""
    return '.' + file_name.rsplit('.', 1)[-1].lower()


def format_file_size(size: int) -> str:
    """Human readable size, e.g. '1.5 MB'."""
    if size == 0:
        return '0 Bytes'

    units = ['Bytes', 'KB', 'MB', 'GB']
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def validate_upload(file_name: str, size_bytes: Optional[int]) -> str:
    """
    Check an upload's name and declared size.

    Args:
        file_name: Declared file name
        size_bytes: Declared size in bytes

    Returns:
        The normalised extension

    Raises:
        ValidationError: extension not allowed or size over 100 MiB
    """
    extension = file_extension(file_name or '')
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"Please select a valid log file ({', '.join(sorted(ALLOWED_EXTENSIONS))}); "
            f"got {file_name!r}"
        )

    if size_bytes is not None and size_bytes > MAX_FILE_SIZE:
        raise ValidationError(
            f"File size {format_file_size(size_bytes)} exceeds "
            f"{format_file_size(MAX_FILE_SIZE)} limit"
        )

    return extension
