"""
utils.py

Small formatting helpers shared by the LearnLink core and routers:
timestamps, relative-time strings, file sizes/formats, and tag lists.
"""
import datetime
import os
from typing import Iterable, List, Optional

CONTENT_TYPES = {
    "PDF": "application/pdf",
    "DOCX": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "DOC": "application/msword",
    "PPTX": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "PPT": "application/vnd.ms-powerpoint",
    "XLSX": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "XLS": "application/vnd.ms-excel",
    "MP4": "video/mp4",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def time_ago(moment: datetime.datetime, now: Optional[datetime.datetime] = None) -> str:
    """
    Human-readable age of ``moment``.

    Returns "Just now", "<n> minutes ago", "<n> hours ago", "<n> days ago",
    or an absolute date such as "Mar 04, 2026" once the age reaches 7 days.
    """
    now = now or utcnow()
    seconds = (now - moment).total_seconds()
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{int(seconds // 60)} minutes ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)} hours ago"
    if seconds < 7 * 86400:
        return f"{int(seconds // 86400)} days ago"
    return moment.strftime("%b %d, %Y")


def file_format(filename: Optional[str]) -> str:
    """Upper-case extension without the dot ("report.pdf" -> "PDF")."""
    if not filename:
        return ""
    return os.path.splitext(filename)[1].lstrip(".").upper()


def format_file_size(num_bytes: int) -> str:
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


def content_type_for(fmt: Optional[str]) -> str:
    if not fmt:
        return DEFAULT_CONTENT_TYPE
    return CONTENT_TYPES.get(fmt.lstrip(".").strip().upper(), DEFAULT_CONTENT_TYPE)


def join_tags(tags: Optional[Iterable[str]]) -> str:
    if not tags:
        return ""
    return ", ".join(t.strip() for t in tags if t and t.strip())


def split_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def is_absolute_http_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")
