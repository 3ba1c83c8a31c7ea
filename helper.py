from elftools.elf.elffile import ELFFile

import mmap

from search import compile_signature
from signature import Signature


ELF_MAGIC = b'\x7fELF'


def mmapFile(f):
    return mmap.mmap(f.fileno(), 0, prot=mmap.PROT_READ)

def load(path):
    with open(path, 'rb') as f:
        return mmapFile(f)


def asSignature(sig):
    if isinstance(sig, Signature):
        return sig
    return compile_signature(sig)


class Reader:
    def __init__(self, data):
        self.data = data

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        if isinstance(self.data, mmap.mmap):
            self.data.close()

    def read(self, offset, size):
        return self.data[offset:offset+size]

    def find(self, sig, offset=0):
        """
        Returns the file offset of the first match at or after `offset`, or None.
        """
        sig = asSignature(sig)
        pos = sig.find(self.data, offset)
        if pos == len(self.data):
            return None
        return pos



class ELFReader(Reader):
    def __init__(self, elf_path):
        print("Loading %s" % elf_path)
        self.f = open(elf_path, 'rb')
        self.elf = ELFFile(self.f)
        self.elf_path = elf_path

        super().__init__(mmapFile(self.f))

        machine = self.elf.header['e_machine']
        if machine not in ["EM_ARM", "EM_AARCH64", "EM_386", "EM_X86_64"]:
            print(f"Unknown architecture: {machine}")

        symtab = self.elf.get_section_by_name('.symtab')
        if symtab is None:
            self.elfSymbols = None
        else:
            self.elfSymbols = {}
            for sym in symtab.iter_symbols():
                self.elfSymbols[sym.name] = sym['st_value']  # virtual address

    def close(self):
        super().close()
        self.f.close()

    def find_va_for_symbol(self, symbol_name):
        if self.elfSymbols == None:
            return None
        return self.elfSymbols.get(symbol_name)

    def _loaded_segments(self):
        for segment in self.elf.iter_segments():
            if segment['p_type'] == 'PT_LOAD':  # Only consider loaded segments
                yield segment

    def _find_segment_for_address(self, virtual_address):
        """
        Finds the segment containing the virtual address.
        """
        for segment in self._loaded_segments():
            segment_vaddr = segment['p_vaddr']
            segment_size = segment['p_memsz']

            if segment_vaddr <= virtual_address < segment_vaddr + segment_size:
                return segment, segment_vaddr, segment['p_offset']
        raise ValueError(f"Virtual address {hex(virtual_address)} not within any loaded segment.")

    def _find_virtual_address_for_offset(self, file_offset):
        """
        Finds the virtual address corresponding to the given file offset.
        """
        for segment in self._loaded_segments():
            segment_offset = segment['p_offset']
            segment_filesz = segment['p_filesz']

            if segment_offset <= file_offset < segment_offset + segment_filesz:
                return segment['p_vaddr'] + (file_offset - segment_offset)

        raise ValueError(f"File offset {hex(file_offset)} not within any loaded segment.")

    def read(self, virtual_address, size):
        """
        Read `size` bytes starting from the given `virtual_address`.
        """
        segment, segment_vaddr, segment_offset = self._find_segment_for_address(virtual_address)

        offset_within_segment = virtual_address - segment_vaddr

        if offset_within_segment + size > segment['p_memsz']:
            raise ValueError("Attempt to read beyond segment memory bounds.")

        # Bytes past p_filesz are zero filled in memory
        start = segment_offset + offset_within_segment
        stop = segment_offset + min(offset_within_segment + size, segment['p_filesz'])
        data = self.data[start:stop] if stop > start else b''
        return data + b'\x00' * (size - len(data))

    def find(self, sig, offset=0):
        """
        Returns the virtual address of the first match that lies in a loaded
        segment, searching from file offset `offset`. Returns None if there is
        no such match.
        """
        sig = asSignature(sig)
        while True:
            pos = sig.find(self.data, offset)
            if pos == len(self.data):
                return None

            try:
                return self._find_virtual_address_for_offset(pos)
            except ValueError:
                offset = pos + 1



def openImage(path):
    with open(path, 'rb') as f:
        magic = f.read(len(ELF_MAGIC))
    if magic == ELF_MAGIC:
        return ELFReader(path)
    return Reader(load(path))
