from __future__ import annotations

import mmap
import os
import sys
from pathlib import Path

import pytest

from helper import ELF_MAGIC, ELFReader, Reader, load, openImage
from search import compile_signature
from signature import Signature


def _elf_path():
    path = os.path.realpath(sys.executable)
    with open(path, "rb") as f:
        if f.read(len(ELF_MAGIC)) != ELF_MAGIC:
            return None
    return path


elf_only = pytest.mark.skipif(_elf_path() is None, reason="interpreter is not an ELF file")


def test_load_maps_file(tmp_path: Path) -> None:
    p = tmp_path / "data.bin"
    p.write_bytes(b"hello\x00world")
    mm = load(str(p))
    try:
        assert isinstance(mm, mmap.mmap)
        assert mm[:5] == b"hello"
        assert len(mm) == 11
    finally:
        mm.close()


def test_reader_find_and_read() -> None:
    r = Reader(b"\x00\x01\xDE\xAD\x42\xEF\x00")
    assert r.find("DE AD ?? EF") == 2
    assert r.find("DE AD ?? EF", 3) is None
    assert r.find(Signature.from_bytes(b"\x00", 0xFF)) == 0
    assert r.read(2, 2) == b"\xDE\xAD"


def test_open_raw_image(tmp_path: Path) -> None:
    p = tmp_path / "image.bin"
    p.write_bytes(b"\x11" * 16 + b"\xDE\xAD\xBE\xEF")
    with openImage(str(p)) as image:
        assert type(image) is Reader
        assert image.find("DE AD ?? EF") == 16
        assert image.find("DE AD ?? EE") is None


@elf_only
def test_elf_find_returns_virtual_address() -> None:
    with openImage(_elf_path()) as image:
        assert isinstance(image, ELFReader)

        segment = next(s for s in image._loaded_segments() if s["p_filesz"] >= 64)
        start = segment["p_offset"] + 32
        literal = bytes(image.data[start:start + 16])

        va = image.find(Signature.from_masked_bytes(literal, "xxxx??xxxxxx?xxx"))
        assert va is not None
        found = image.read(va, 16)
        for i, (a, b) in enumerate(zip(found, literal)):
            if i not in (4, 5, 12):
                assert a == b


@elf_only
def test_elf_offset_translation() -> None:
    with openImage(_elf_path()) as image:
        segment = next(image._loaded_segments())
        offset = segment["p_offset"]
        va = image._find_virtual_address_for_offset(offset)
        assert va == segment["p_vaddr"]
        assert image.read(va, 4) == bytes(image.data[offset:offset + 4])

        with pytest.raises(ValueError):
            image._find_virtual_address_for_offset(len(image.data) + 100)
        with pytest.raises(ValueError):
            image._find_segment_for_address(-1)

        last = list(image._loaded_segments())[-1]
        with pytest.raises(ValueError):
            image.read(last["p_vaddr"] + last["p_memsz"] - 4, 8)


@elf_only
def test_elf_unknown_symbol() -> None:
    with ELFReader(_elf_path()) as image:
        assert image.find_va_for_symbol("no_such_symbol_in_this_binary") is None
        assert image.find(compile_signature("")) is None
