"""Shared fixtures: in-memory images, archives and documents"""

import io
import struct
import tarfile
import zipfile
import zlib

import docx
import pytest
from PIL import Image
from pypdf import PdfWriter


@pytest.fixture
def make_png():
    def _make(width=100, height=100, color=(255, 0, 0), mode="RGB", fmt="PNG"):
        buffer = io.BytesIO()
        Image.new(mode, (width, height), color).save(buffer, fmt)
        return buffer.getvalue()
    return _make


@pytest.fixture
def make_zip():
    def _make(entries):
        """entries: mapping of in-archive path to bytes; paths ending in '/' become directories"""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            for path, content in entries.items():
                zf.writestr(path, content)
        return buffer.getvalue()
    return _make


@pytest.fixture
def make_tar():
    def _make(entries, mode="w:gz"):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode=mode) as tf:
            for path, content in entries.items():
                info = tarfile.TarInfo(path)
                info.size = len(content)
                tf.addfile(info, io.BytesIO(content))
        return buffer.getvalue()
    return _make


@pytest.fixture
def make_pdf():
    def _make(title=None, author=None):
        writer = PdfWriter()
        writer.add_blank_page(width=612, height=792)
        metadata = {}
        if title:
            metadata["/Title"] = title
        if author:
            metadata["/Author"] = author
        if metadata:
            writer.add_metadata(metadata)
        buffer = io.BytesIO()
        writer.write(buffer)
        return buffer.getvalue()
    return _make


@pytest.fixture
def make_docx():
    def _make(title=None, author=None, paragraphs=()):
        document = docx.Document()
        if title:
            document.core_properties.title = title
        if author:
            document.core_properties.author = author
        for text in paragraphs:
            document.add_paragraph(text)
        buffer = io.BytesIO()
        document.save(buffer)
        return buffer.getvalue()
    return _make


@pytest.fixture
def make_png_header():
    def _chunk(kind, data):
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))

    def _make(width, height):
        """A PNG whose header declares width x height but carries almost no pixel data"""
        return (
            b"\x89PNG\r\n\x1a\n"
            + _chunk(b"IHDR", struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0))
            + _chunk(b"IDAT", zlib.compress(b"\x00"))
            + _chunk(b"IEND", b"")
        )
    return _make
