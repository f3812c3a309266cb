"""Rendering of directory views: HTML pages and PROPFIND multistatus."""

from __future__ import annotations

import html
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from email.utils import formatdate
from urllib.parse import quote

from magnetdav.core.media import format_file_size
from magnetdav.models import ContentRecord, FileEntry

DAV_NS = "DAV:"

_PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: sans-serif; margin: 2em; }}
table {{ border-collapse: collapse; width: 100%; }}
th, td {{ text-align: left; padding: 4px 12px; border-bottom: 1px solid #ddd; }}
td.size {{ text-align: right; white-space: nowrap; }}
.muted {{ color: #888; }}
</style>
</head>
<body>
<h1>{title}</h1>
{body}
</body>
</html>
"""


@dataclass
class DirectoryView:
    """A content record with its catalog files, ordered by index."""

    record: ContentRecord
    files: list[FileEntry] = field(default_factory=list)

    @property
    def accessible(self) -> bool:
        return self.record.is_ready


def file_href(prefix: str, identifier: str, path: str) -> str:
    return f"{prefix}/{quote(identifier)}/{quote(path)}"


def record_href(prefix: str, identifier: str) -> str:
    return f"{prefix}/{quote(identifier)}/"


def render_root(records: list[ContentRecord], prefix: str) -> str:
    """HTML page listing every content record."""
    if not records:
        body = '<p class="muted">No content yet.</p>'
    else:
        rows = []
        for record in records:
            label = html.escape(record.name or record.id)
            rows.append(
                "<tr>"
                f'<td><a href="{html.escape(record_href(prefix, record.id))}">{label}</a></td>'
                f"<td>{html.escape(record.status.value)}</td>"
                f"<td>{record.file_count}</td>"
                f'<td class="size">{format_file_size(record.total_size)}</td>'
                "</tr>"
            )
        body = (
            "<table><tr><th>Name</th><th>Status</th><th>Files</th>"
            '<th class="size">Size</th></tr>' + "".join(rows) + "</table>"
        )
    return _PAGE.format(title="Magnet WebDAV", body=body)


def render_directory(view: DirectoryView, prefix: str) -> str:
    """HTML page for one record; files link only once the record is ready."""
    record = view.record
    title = html.escape(record.name or record.id)
    parts = [f'<p><a href="{prefix}/">..</a></p>']
    if not view.accessible:
        detail = f" ({html.escape(record.error)})" if record.error else ""
        parts.append(
            f'<p class="muted">Status: {html.escape(record.status.value)}{detail}</p>'
        )
    rows = []
    for entry in view.files:
        name = html.escape(entry.file_path)
        if view.accessible:
            href = html.escape(file_href(prefix, record.id, entry.file_path))
            name = f'<a href="{href}">{name}</a>'
        rows.append(
            f'<tr><td>{name}</td><td class="size">{format_file_size(entry.file_size)}</td></tr>'
        )
    parts.append(
        '<table><tr><th>File</th><th class="size">Size</th></tr>'
        + "".join(rows)
        + "</table>"
    )
    return _PAGE.format(title=title, body="\n".join(parts))


def _dav(tag: str) -> str:
    return f"{{{DAV_NS}}}{tag}"


def _add_response(
    multistatus: ET.Element,
    href: str,
    *,
    display_name: str,
    collection: bool,
    length: int = 0,
    content_type: str | None = None,
    modified: float | None = None,
) -> None:
    response = ET.SubElement(multistatus, _dav("response"))
    ET.SubElement(response, _dav("href")).text = href
    propstat = ET.SubElement(response, _dav("propstat"))
    prop = ET.SubElement(propstat, _dav("prop"))
    ET.SubElement(prop, _dav("displayname")).text = display_name
    resourcetype = ET.SubElement(prop, _dav("resourcetype"))
    if collection:
        ET.SubElement(resourcetype, _dav("collection"))
    else:
        ET.SubElement(prop, _dav("getcontentlength")).text = str(length)
        if content_type:
            ET.SubElement(prop, _dav("getcontenttype")).text = content_type
    if modified is not None:
        ET.SubElement(prop, _dav("getlastmodified")).text = formatdate(
            modified, usegmt=True
        )
    ET.SubElement(propstat, _dav("status")).text = "HTTP/1.1 200 OK"


def _serialize(multistatus: ET.Element) -> str:
    ET.register_namespace("D", DAV_NS)
    return '<?xml version="1.0" encoding="utf-8"?>\n' + ET.tostring(
        multistatus, encoding="unicode"
    )


def propfind_root(records: list[ContentRecord], prefix: str, depth: str) -> str:
    multistatus = ET.Element(_dav("multistatus"))
    _add_response(multistatus, f"{prefix}/", display_name="webdav", collection=True)
    if depth != "0":
        for record in records:
            _add_response(
                multistatus,
                record_href(prefix, record.id),
                display_name=record.name or record.id,
                collection=True,
                modified=record.updated_at,
            )
    return _serialize(multistatus)


def propfind_directory(view: DirectoryView, prefix: str, depth: str) -> str:
    record = view.record
    multistatus = ET.Element(_dav("multistatus"))
    _add_response(
        multistatus,
        record_href(prefix, record.id),
        display_name=record.name or record.id,
        collection=True,
        modified=record.updated_at,
    )
    if depth != "0" and view.accessible:
        for entry in view.files:
            _add_response(
                multistatus,
                file_href(prefix, record.id, entry.file_path),
                display_name=entry.file_name,
                collection=False,
                length=entry.file_size,
                content_type=entry.mime_type,
                modified=entry.updated_at,
            )
    return _serialize(multistatus)


def propfind_file(record: ContentRecord, entry: FileEntry, prefix: str) -> str:
    multistatus = ET.Element(_dav("multistatus"))
    _add_response(
        multistatus,
        file_href(prefix, record.id, entry.file_path),
        display_name=entry.file_name,
        collection=False,
        length=entry.file_size,
        content_type=entry.mime_type,
        modified=entry.updated_at,
    )
    return _serialize(multistatus)
