# -*- coding: utf-8 -*-
"""
Reader and writer for MSBT (MsgStdBn) message containers.

An MSBT file holds a 32 byte header followed by sections, each one starting on a
16 byte boundary:

    LBL1  label hash table, maps a label such as 'Greeting' to a text index
    ATR1  optional attribute records, carried through untouched
    TXT2  UTF-16 strings addressed by the text index

The same data can be written as an editable text document where every entry is
a block literal:

    Greeting: |-
      Hello
      world

Every line of a body is indented by two spaces, so newlines inside a body are
kept apart from the newline that ends the entry.
"""
import io
import struct
from bisect import bisect_right
from dataclasses import dataclass
from typing import Optional

import msbt_constants as const


class FormatError(ValueError):
    """Raised for any structural problem in an MSBT container or text document."""

    def __init__(self, message, offset=None):
        super().__init__(message)
        self.offset = offset


class BadMagicError(FormatError):
    def __init__(self, magic):
        super().__init__("Invalid MSBT magic: {!r}".format(bytes(magic)), offset=0)
        self.magic = bytes(magic)


class UnsupportedByteOrderError(FormatError):
    def __init__(self, byte_order):
        super().__init__("Only little-endian MSBT files are supported (byte order mark 0x{:04X})".format(byte_order),
                         offset=8)
        self.byte_order = byte_order


class UnsupportedVersionError(FormatError):
    def __init__(self, version):
        super().__init__("Only MSBT version 3.0.1 is supported, found 0x{:04X}".format(version), offset=12)
        self.version = version


class UnknownSectionError(FormatError):
    def __init__(self, magic, offset):
        super().__init__("Unsupported data block: {}".format(section_name(magic)), offset=offset)
        self.magic = bytes(magic)


class MissingSectionError(FormatError):
    def __init__(self, magic):
        name = const.section_info[magic]["sectionName"]
        super().__init__("The {} section ({}) was not found".format(name, section_name(magic)))
        self.magic = magic


class DuplicateSectionError(FormatError):
    def __init__(self, magic, offset):
        super().__init__("Section {} appears more than once".format(section_name(magic)), offset=offset)
        self.magic = bytes(magic)


class TruncatedContainerError(FormatError):
    pass


class EntryCountMismatchError(FormatError):
    def __init__(self, label_count, text_count):
        super().__init__("Label section lists {} entries but text section holds {}".format(label_count, text_count))
        self.label_count = label_count
        self.text_count = text_count


class TruncatedDocumentError(FormatError):
    """A text document ended in the middle of an entry."""


def section_name(magic):
    return bytes(magic).decode('ascii', errors='backslashreplace')


# Read and write little-endian binary structs
def read_exact(file, size):
    position = file.tell()
    chunk = file.read(size)
    if len(chunk) != size:
        raise TruncatedContainerError(
            "Expected {} bytes at offset 0x{:X} but only {} remain".format(size, position, len(chunk)),
            offset=position)
    return chunk


def readUByte(file): return struct.unpack('<B', read_exact(file, 1))[0]


def readUInt16(file): return struct.unpack('<H', read_exact(file, 2))[0]


def readUInt32(file): return struct.unpack('<I', read_exact(file, 4))[0]


def writeUByte(file, value): file.write(struct.pack('<B', value))


def writeUInt16(file, value): file.write(struct.pack('<H', value))


def writeUInt32(file, value): file.write(struct.pack('<I', value))


def align_up(value, alignment=const.SECTION_ALIGNMENT):
    return (value + alignment - 1) // alignment * alignment


def write_padding(file, alignment=const.SECTION_ALIGNMENT):
    position = file.tell()
    file.write(b'\x00' * (align_up(position, alignment) - position))


# Header ----------------------------------------------------------------------
# magic, byte order mark, reserved, version, section count, reserved, file size, reserved
HEADER_STRUCT = struct.Struct('<8sHHHHHI10s')
SECTION_HEADER_STRUCT = struct.Struct('<4sI8s')
assert HEADER_STRUCT.size == const.HEADER_SIZE
assert SECTION_HEADER_STRUCT.size == const.SECTION_HEADER_SIZE


def parse_header(data):
    """Validate the container header.

    Args:
        data (bytes): The complete container.

    Returns:
        tuple[int, int]: (section count, declared file size)
    """
    if len(data) < const.HEADER_SIZE:
        if not const.MSBT_MAGIC.startswith(bytes(data[:len(const.MSBT_MAGIC)])):
            raise BadMagicError(data[:len(const.MSBT_MAGIC)])
        raise TruncatedContainerError(
            "Header needs {} bytes, got {}".format(const.HEADER_SIZE, len(data)), offset=0)

    magic, byte_order, _, version, section_count, _, file_size, _ = HEADER_STRUCT.unpack_from(data, 0)
    if magic != const.MSBT_MAGIC:
        raise BadMagicError(magic)
    if byte_order != const.BYTE_ORDER_MARK:
        raise UnsupportedByteOrderError(byte_order)
    if version != const.MSBT_VERSION:
        raise UnsupportedVersionError(version)
    if file_size > len(data):
        raise TruncatedContainerError(
            "Header declares {} bytes but the buffer holds {}".format(file_size, len(data)), offset=18)
    return section_count, file_size


def write_header(section_count, total_size):
    return HEADER_STRUCT.pack(const.MSBT_MAGIC, const.BYTE_ORDER_MARK, 0, const.MSBT_VERSION,
                              section_count, 0, total_size, b'\x00' * 10)


def parse_section_header(file):
    """Read a 16 byte section header, returns (magic, payload size)."""
    magic, size, _ = SECTION_HEADER_STRUCT.unpack(read_exact(file, const.SECTION_HEADER_SIZE))
    return magic, size


def write_section(file, magic, payload):
    file.write(SECTION_HEADER_STRUCT.pack(magic, len(payload), b'\x00' * 8))
    file.write(payload)
    write_padding(file)


# LBL1 ------------------------------------------------------------------------
def label_hash(label, slot_count=const.LABEL_HASH_SLOTS):
    """Hash slot of a label in the LBL1 table."""
    if isinstance(label, str):
        label = label.encode(const.LABEL_ENCODING)
    value = 0
    for byte in label:
        value = (value * const.LABEL_HASH_MULTIPLIER + byte) & 0xFFFFFFFF
    return value % slot_count


def read_label_section(payload):
    """Read the LBL1 hash table.

    Labels are stored grouped by hash slot, so they are returned sorted by text index.

    Args:
        payload (bytes): Section payload without the section header.

    Returns:
        tuple[tuple[int, str], ...]: (index, label) pairs covering indices 0..n-1.
    """
    lineIn = io.BytesIO(payload)
    slot_count = readUInt32(lineIn)
    entries = []
    for slot in range(slot_count):
        label_count = readUInt32(lineIn)
        label_offset = readUInt32(lineIn)
        currentPosition = lineIn.tell()
        if label_offset > len(payload):
            raise TruncatedContainerError(
                "Label slot {} points past the section end (0x{:X})".format(slot, label_offset), offset=label_offset)
        lineIn.seek(label_offset)
        for _ in range(label_count):
            length = readUByte(lineIn)
            encoded = read_exact(lineIn, length)
            index = readUInt32(lineIn)
            try:
                label = encoded.decode(const.LABEL_ENCODING)
            except UnicodeDecodeError as e:
                raise FormatError("Label {!r} is not valid {}".format(encoded, const.LABEL_ENCODING)) from e
            entries.append((index, label))
        lineIn.seek(currentPosition)

    entries.sort(key=lambda entry: entry[0])
    check_label_indexes(entries)
    return tuple(entries)


def check_label_indexes(entries):
    for position, (index, label) in enumerate(entries):
        if index != position:
            raise FormatError("Label indexes must cover 0..{} once each, label {!r} has index {}".format(
                len(entries) - 1, label, index))


def write_label_section(labels, slot_count=const.LABEL_HASH_SLOTS):
    slots = [[] for _ in range(slot_count)]
    for index, label in labels:
        encoded = label.encode(const.LABEL_ENCODING)
        if len(encoded) > const.MAX_LABEL_LENGTH:
            raise FormatError("Label {!r} is longer than {} bytes".format(label, const.MAX_LABEL_LENGTH))
        slots[label_hash(encoded, slot_count)].append((index, encoded))

    indexOut = io.BytesIO()
    writeUInt32(indexOut, slot_count)
    label_offset = 4 + 8 * slot_count
    for slot in slots:
        writeUInt32(indexOut, len(slot))
        writeUInt32(indexOut, label_offset)
        # length byte + label + u32 index
        label_offset += sum(len(encoded) + 5 for _, encoded in slot)
    for slot in slots:
        for index, encoded in slot:
            writeUByte(indexOut, len(encoded))
            indexOut.write(encoded)
            writeUInt32(indexOut, index)
    return indexOut.getvalue()


# TXT2 ------------------------------------------------------------------------
def read_text_section(payload):
    """Read the TXT2 string table.

    The end of each string is the next larger offset in the table (or the end of the
    section), so control tags holding 0x0000 arguments survive. One terminator is
    removed from each string.
    """
    lineIn = io.BytesIO(payload)
    text_count = readUInt32(lineIn)
    offsets = [readUInt32(lineIn) for _ in range(text_count)]
    strings_start = lineIn.tell()
    boundaries = sorted(set(offsets) | {len(payload)})

    texts = []
    for index, text_offset in enumerate(offsets):
        if text_offset < strings_start or text_offset > len(payload):
            raise TruncatedContainerError(
                "Text entry {} has offset 0x{:X} outside the section".format(index, text_offset), offset=text_offset)
        position = bisect_right(boundaries, text_offset)
        end = boundaries[position] if position < len(boundaries) else len(payload)
        raw = payload[text_offset:end]
        if len(raw) % 2:
            raise TruncatedContainerError(
                "Text entry {} has an odd byte length {}".format(index, len(raw)), offset=text_offset)
        if raw.endswith(const.TEXT_TERMINATOR):
            raw = raw[:-len(const.TEXT_TERMINATOR)]
        texts.append(raw.decode(const.TEXT_ENCODING, errors='surrogatepass'))
    return tuple(texts)


def write_text_section(texts):
    encoded = [text.encode(const.TEXT_ENCODING, errors='surrogatepass') + const.TEXT_TERMINATOR for text in texts]
    textOut = io.BytesIO()
    writeUInt32(textOut, len(encoded))
    text_offset = 4 + 4 * len(encoded)
    for raw in encoded:
        writeUInt32(textOut, text_offset)
        text_offset += len(raw)
    for raw in encoded:
        textOut.write(raw)
    return textOut.getvalue()


# Container -------------------------------------------------------------------
@dataclass(frozen=True)
class MSBT:
    """One message container.

    labels are (index, label) pairs in output order, texts are addressed by index and
    attributes is the raw ATR1 payload, or None when the file had no ATR1 section.
    """
    labels: tuple = ()
    texts: tuple = ()
    attributes: Optional[bytes] = None

    def __post_init__(self):
        object.__setattr__(self, 'labels', tuple((int(index), label) for index, label in self.labels))
        object.__setattr__(self, 'texts', tuple(self.texts))
        if self.attributes is not None:
            object.__setattr__(self, 'attributes', bytes(self.attributes))
        if len(self.labels) != len(self.texts):
            raise EntryCountMismatchError(len(self.labels), len(self.texts))
        check_label_indexes(sorted(self.labels))

    byte_order = const.BYTE_ORDER_MARK
    version = const.MSBT_VERSION

    @property
    def section_count(self):
        return 3 if self.attributes is not None else 2

    def items(self):
        """(label, body) pairs in label order."""
        return [(label, self.texts[index]) for index, label in self.labels]

    def find(self, label):
        for index, name in self.labels:
            if name == label:
                return self.texts[index]
        return None

    def replace_texts(self, replacements):
        """Return a copy with the bodies of the given labels replaced."""
        texts = list(self.texts)
        for index, label in self.labels:
            if label in replacements:
                texts[index] = replacements[label]
        return MSBT(self.labels, texts, self.attributes)

    def to_binary(self):
        indexOut = io.BytesIO()
        indexOut.write(b'\x00' * const.HEADER_SIZE)

        write_section(indexOut, const.LABEL_SECTION_MAGIC, write_label_section(self.labels))
        if self.attributes is not None:
            write_section(indexOut, const.ATTRIBUTE_SECTION_MAGIC, self.attributes)
        write_section(indexOut, const.TEXT_SECTION_MAGIC, write_text_section(self.texts))

        total_size = indexOut.tell()
        indexOut.seek(0)
        indexOut.write(write_header(self.section_count, total_size))
        return indexOut.getvalue()

    def to_text(self):
        return dump_text(self.labels, self.texts)


def from_binary(data):
    """Parse a complete MSBT container.

    Args:
        data (bytes): Container bytes, any bytes-like object.

    Returns:
        MSBT: The parsed container.

    Raises:
        FormatError: For a bad magic, byte order or version, an unknown or repeated
            section, a missing LBL1 or TXT2 section, or truncated data.
    """
    data = bytes(data)
    section_count, file_size = parse_header(data)

    sections = {}
    lineIn = io.BytesIO(data[:file_size])
    lineIn.seek(const.HEADER_SIZE)
    for _ in range(section_count):
        section_offset = lineIn.tell()
        magic, size = parse_section_header(lineIn)
        if magic not in const.section_info:
            raise UnknownSectionError(magic, section_offset)
        if magic in sections:
            raise DuplicateSectionError(magic, section_offset)
        sections[magic] = read_exact(lineIn, size)
        lineIn.seek(align_up(lineIn.tell()))

    if const.LABEL_SECTION_MAGIC not in sections:
        raise MissingSectionError(const.LABEL_SECTION_MAGIC)
    if const.TEXT_SECTION_MAGIC not in sections:
        raise MissingSectionError(const.TEXT_SECTION_MAGIC)

    labels = read_label_section(sections[const.LABEL_SECTION_MAGIC])
    texts = read_text_section(sections[const.TEXT_SECTION_MAGIC])
    if len(labels) != len(texts):
        raise EntryCountMismatchError(len(labels), len(texts))
    return MSBT(labels, texts, sections.get(const.ATTRIBUTE_SECTION_MAGIC))


# Text document ---------------------------------------------------------------
def dump_text(labels, texts):
    """Write (index, label) pairs and their bodies as block literal entries."""
    lines = []
    for index, label in labels:
        lines.append(label + const.LABEL_SEPARATOR + const.BLOCK_INDICATOR + '\n')
        for body_line in texts[index].split('\n'):
            lines.append(const.BODY_INDENT + body_line + '\n')
    return ''.join(lines)


def parse_text(document):
    """Split a text document into labels and bodies.

    The label is everything up to the next ':'. Its body starts after the next newline
    followed by two spaces. A newline followed by two more spaces continues the body
    (the newline is kept, the indent is dropped); any other newline ends the entry.

    Returns:
        tuple, tuple: (index, label) pairs and bodies, indexed in document order.

    Raises:
        TruncatedDocumentError: A label is not followed by an indented body line.
    """
    if document and not document.endswith('\n'):
        document += '\n'

    continuation = '\n' + const.BODY_INDENT
    labels = []
    texts = []
    position = 0
    while position < len(document):
        separator = document.find(const.LABEL_SEPARATOR, position)
        if separator < 0:
            break
        label = document[position:separator]

        body_start = document.find(continuation, separator)
        if body_start < 0:
            raise TruncatedDocumentError(
                "Entry {!r} has no indented body line".format(label), offset=separator)
        cursor = body_start + len(continuation)

        body_lines = []
        while True:
            newline = document.find('\n', cursor)
            if newline < 0:
                raise TruncatedDocumentError(
                    "Entry {!r} runs past the end of the document".format(label), offset=cursor)
            body_lines.append(document[cursor:newline])
            if not document.startswith(const.BODY_INDENT, newline + 1):
                break
            cursor = newline + len(continuation)

        labels.append((len(labels), label))
        texts.append('\n'.join(body_lines))
        position = newline + 1

    return tuple(labels), tuple(texts)


def from_text(document):
    labels, texts = parse_text(document)
    return MSBT(labels, texts)
