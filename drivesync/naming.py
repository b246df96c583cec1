"""
File and folder names: sanitizing user input, recovering the name a user uploaded a file
under, and inferring MIME types from extensions.

Uploads are stored as "<ms timestamp>-<6 random chars>-<name>" with the user's name in the
"original-name" object metadata, so two uploads of the same name never share a key.
"""

import re

from drivesync.errors import NameInvalid

ORIGINAL_NAME_METADATA = "original-name"
FOLDER_CONTENT_TYPE = "application/x-directory"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_STORED_NAME = re.compile(r"^\d{13}-[a-z0-9]{6}-(?P<name>.+)$")

INFER_MIME_TYPE: dict[str, str] = {
    # Images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "bmp": "image/bmp",
    "ico": "image/x-icon",
    # Documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Text
    "txt": "text/plain",
    "csv": "text/csv",
    "json": "application/json",
    "xml": "application/xml",
    "html": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "ts": "application/typescript",
    # Videos
    "mp4": "video/mp4",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    "wmv": "video/x-ms-wmv",
    "flv": "video/x-flv",
    "webm": "video/webm",
    # Audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "flac": "audio/flac",
    "aac": "audio/aac",
    "ogg": "audio/ogg",
    # Archives
    "zip": "application/zip",
    "rar": "application/vnd.rar",
    "7z": "application/x-7z-compressed",
    "tar": "application/x-tar",
    "gz": "application/gzip",
}


def sanitize_name(name: str) -> str:
    """Replace path separators so a name can only ever address a single level"""
    sanitized = re.sub(r"[/\\]", "_", (name or "").strip())
    if not sanitized or sanitized in {".", ".."}:
        raise NameInvalid("Folder name cannot be empty")
    return sanitized


def strip_stored_name(stored_name: str) -> str:
    """
    Remove the timestamp-random prefix added on upload

    >>> strip_stored_name("1700000000000-ab12cd-report.pdf")
    'report.pdf'
    """
    match = _STORED_NAME.match(stored_name)
    return match.group("name") if match else stored_name


def recover_name(stored_name: str, metadata: dict[str, str] | None = None) -> str:
    if metadata:
        original = metadata.get(ORIGINAL_NAME_METADATA)
        if original:
            return original
    return strip_stored_name(stored_name)


def split_extension(name: str) -> str:
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def infer_mime_type(name: str) -> str:
    return INFER_MIME_TYPE.get(split_extension(name), DEFAULT_CONTENT_TYPE)


def mime_category(mime_type: str | None) -> str:
    """Coarse category used in storage statistics"""
    if not mime_type:
        return "other"
    major = mime_type.split("/", 1)[0]
    if major in {"image", "video", "audio", "text"}:
        return major
    if mime_type in {"application/zip", "application/vnd.rar", "application/x-7z-compressed", "application/x-tar", "application/gzip"}:
        return "archive"
    if mime_type == "application/pdf" or "officedocument" in mime_type or "ms-" in mime_type or mime_type == "application/msword":
        return "document"
    return "other"
