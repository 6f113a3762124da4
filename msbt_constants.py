# -*- coding: utf-8 -*-
"""
Fixed values of the MSBT (MsgStdBn) message container, version 3 with UTF-16 text.

All multi-byte fields are little-endian.
"""

MSBT_MAGIC = b'MsgStdBn'

# Stored as FF FE on disk
BYTE_ORDER_MARK = 0xFEFF

# Encoding byte 0x01 (UTF-16) followed by version byte 0x03
MSBT_VERSION = 0x0301

HEADER_SIZE = 0x20
SECTION_HEADER_SIZE = 0x10
SECTION_ALIGNMENT = 0x10

LABEL_SECTION_MAGIC = b'LBL1'
ATTRIBUTE_SECTION_MAGIC = b'ATR1'
TEXT_SECTION_MAGIC = b'TXT2'

# Output order of the sections
SECTION_ORDER = (LABEL_SECTION_MAGIC, ATTRIBUTE_SECTION_MAGIC, TEXT_SECTION_MAGIC)

section_info = {
    LABEL_SECTION_MAGIC: {"sectionName": "labels", "required": True},
    ATTRIBUTE_SECTION_MAGIC: {"sectionName": "attributes", "required": False},
    TEXT_SECTION_MAGIC: {"sectionName": "text", "required": True},
}

# Label hash table
LABEL_HASH_MULTIPLIER = 0x492
LABEL_HASH_SLOTS = 101
MAX_LABEL_LENGTH = 0xFF
LABEL_ENCODING = 'utf-8'

TEXT_ENCODING = 'utf-16-le'
TEXT_TERMINATOR = b'\x00\x00'

# Textual document grammar
LABEL_SEPARATOR = ':'
BLOCK_INDICATOR = ' |-'
BODY_INDENT = '  '
