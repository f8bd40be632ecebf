# Copyright (c) 2020-2023, Andrea Zoppi.
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

r"""Intel HEX format.

Parses and formats the Intel HEX textual format, holding data within a
:obj:`sparsehex.blocks.SparseBlockSet`.

Each line is a record:

+--------+--------+--------+------+-----------+----------+
| Mark   | Count  | Offset | Tag  | Data      | Checksum |
+========+========+========+======+===========+==========+
| ``:``  | 2 hex  | 4 hex  | 2 hex| 2*Count   | 2 hex    |
+--------+--------+--------+------+-----------+----------+

Parsing is strict: any unexpected character, checksum error, or ambiguous
address makes the whole parsing fail.

See Also:
    `<https://en.wikipedia.org/wiki/Intel_HEX>`_
"""

import enum
import logging
import re
from typing import Any
from typing import Callable
from typing import Iterator
from typing import NamedTuple
from typing import Optional
from typing import Union

from .base import ADDRESS_WINDOW_SIZE
from .base import DEFAULT_LINE_SIZE
from .base import MAX_ADDRESS
from .base import MAX_RECORD_DATA_SIZE
from .base import Address
from .base import AddressOverflowError
from .base import AddressWindowOverflowError
from .base import AnyBytes
from .base import ChecksumMismatchError
from .base import DuplicateAddressError
from .base import EmptyInputError
from .base import InvalidLineSizeError
from .base import InvalidOffsetError
from .base import LengthMismatchError
from .base import MalformedInputError
from .base import MissingEOFError
from .base import OverlappingBlocksError
from .base import TrailingDataError
from .base import UnknownRecordTypeError
from .base import as_view
from .base import check_address
from .base import checksum
from .base import checksum_two
from .blocks import SparseBlockSet

_logger = logging.getLogger(__name__)


class IhexTag(enum.IntEnum):
    r"""Intel HEX record tag."""

    DATA = 0
    r"""Binary data."""

    END_OF_FILE = 1
    r"""End Of File."""

    EXTENDED_SEGMENT_ADDRESS = 2
    r"""Extended Segment Address."""

    START_SEGMENT_ADDRESS = 3
    r"""Start Segment Address."""

    EXTENDED_LINEAR_ADDRESS = 4
    r"""Extended Linear Address."""

    START_LINEAR_ADDRESS = 5
    r"""Start Linear Address."""

    def is_data(self) -> bool:

        return self == self.DATA

    def is_eof(self) -> bool:

        return self == self.END_OF_FILE

    def is_extension(self) -> bool:
        r"""Tells whether this is an Extended Address record tag.

        Returns:
            bool: This is an Extended Address record tag.

        Examples:
            >>> IhexTag.EXTENDED_LINEAR_ADDRESS.is_extension()
            True
            >>> IhexTag.DATA.is_extension()
            False
        """

        return ((self == self.EXTENDED_SEGMENT_ADDRESS) or
                (self == self.EXTENDED_LINEAR_ADDRESS))

    def is_start(self) -> bool:

        return ((self == self.START_SEGMENT_ADDRESS) or
                (self == self.START_LINEAR_ADDRESS))


class IhexRecord(NamedTuple):
    r"""Decoded Intel HEX record.

    Records only live while parsing or formatting; the data they carry end
    up into a :obj:`SparseBlockSet`.
    """

    index: int
    r"""Record number, starting from 1; 0 if not parsed."""

    line: str
    r"""Record text, without line terminator."""

    count: int
    r"""Declared data size."""

    offset: int
    r"""16-bit load offset."""

    tag: Union[IhexTag, int]
    r"""Record tag; plain :obj:`int` if unknown."""

    data: bytes
    r"""Data bytes."""

    checksum: int
    r"""Checksum byte."""

    endex: int = 0
    r"""Exclusive end character index within the parsed text."""

    @classmethod
    def build(
        cls,
        tag: IhexTag,
        offset: int = 0,
        data: AnyBytes = b'',
    ) -> 'IhexRecord':
        r"""Creates a record.

        Count and checksum are computed from the other fields.

        Arguments:
            tag (:obj:`IhexTag`):
                Record tag.

            offset (int):
                16-bit load offset.

            data (bytes):
                Data bytes, up to 255.

        Returns:
            :obj:`IhexRecord`: New record.

        Examples:
            >>> IhexRecord.build(IhexTag.EXTENDED_LINEAR_ADDRESS, 0, b'\x12\x34').to_line()
            ':020000041234B4'
            >>> IhexRecord.build(IhexTag.END_OF_FILE).to_line()
            ':00000001FF'
        """

        data = bytes(data)
        count = len(data)
        if count > MAX_RECORD_DATA_SIZE:
            raise InvalidLineSizeError('data size overflow')
        header = bytes((count, (offset >> 8) & 0xFF, offset & 0xFF, tag & 0xFF))
        record = cls(0, '', count, offset, tag, data, checksum_two(header, data))
        return record._replace(line=record.to_line())

    def to_line(self) -> str:

        return ':%02X%04X%02X%s%02X' % (
            self.count & 0xFF,
            self.offset & 0xFFFF,
            self.tag & 0xFF,
            self.data.hex().upper(),
            self.checksum & 0xFF,
        )


class RecordScanner:
    r"""Splits text into record matches.

    Records must follow each other without anything in between, apart from
    a single line terminator after each record. Unparsable text after the
    last record stops the scan, so that the missing End Of File record is
    reported by the caller.

    Arguments:
        text (str):
            Text to scan. A byte string is decoded as Latin-1, so that
            non-ASCII bytes are reported as malformed input.

    Attributes:
        text (str):
            Scanned text.

        cursor (int):
            Index of the first character not yet consumed.

        count (int):
            Number of records matched so far.
    """

    LINE_REGEX = re.compile(
        r':(?P<record>[0-9A-Fa-f]{8,})'
        r'(?P<checksum>[0-9A-Fa-f]{2})'
        r'(?:\r\n|\r|\n|)'
    )
    r"""Record line regex, including the optional line terminator."""

    def __init__(
        self,
        text: Union[str, AnyBytes],
    ):

        if not isinstance(text, str):
            text = bytes(text).decode('latin-1')

        self.text: str = text
        self.cursor: int = 0
        self.count: int = 0

    def __iter__(
        self,
    ) -> Iterator[re.Match]:

        text = self.text
        size = len(text)
        regex = self.LINE_REGEX

        while self.cursor < size:
            match = regex.match(text, self.cursor)

            if match is None:
                following = regex.search(text, self.cursor)
                if following is None:
                    if not self.count:
                        raise EmptyInputError('malformed input: could not parse any records')
                    return  # no more records, EOF missing

                endex = following.start()
                snippet = text[self.cursor:min(endex, self.cursor + 16)].strip()
                raise MalformedInputError(self.cursor, endex, snippet)

            self.count += 1
            self.cursor = match.end()
            yield match

        if not self.count:
            raise EmptyInputError('empty input')


class RecordDecoder:
    r"""Decodes records into blocks.

    Keeps track of the address extension, as set by the Extended Segment
    Address and Extended Linear Address records, and adds the data records
    to :attr:`blocks`.

    Arguments:
        blocks (:obj:`SparseBlockSet`):
            Target block set. If ``None``, a new one is created.

    Attributes:
        blocks (:obj:`SparseBlockSet`):
            Data decoded so far, not joined yet.

        ulba (int):
            Upper linear base address, added to the data record offsets.

        eof (bool):
            The End Of File record was applied.
    """

    def __init__(
        self,
        blocks: Optional[SparseBlockSet] = None,
    ):

        self.blocks: SparseBlockSet = SparseBlockSet() if blocks is None else blocks
        self.ulba: Address = 0
        self.eof: bool = False

    def decode(
        self,
        match: re.Match,
        index: int,
    ) -> IhexRecord:
        r"""Decodes and validates a matched record.

        Arguments:
            match (:obj:`re.Match`):
                Record match, as yielded by :obj:`RecordScanner`.

            index (int):
                Record number, starting from 1.

        Returns:
            :obj:`IhexRecord`: Decoded record.

        Raises:
            :obj:`LengthMismatchError`: Wrong data size.

            :obj:`ChecksumMismatchError`: Wrong checksum.
        """

        line = match.group(0).rstrip('\r\n')
        digits = match.group('record')
        if len(digits) % 2:
            raise LengthMismatchError('odd number of hex digits', index, line)

        raw = bytes.fromhex(digits)
        count = raw[0]
        if count + 4 != len(raw):
            raise LengthMismatchError(f'mismatched record length, expected {count} data bytes '
                                      f'but actual length is {len(raw) - 4}', index, line)

        expected = checksum(raw)
        actual = int(match.group('checksum'), 16)
        if actual != expected:
            raise ChecksumMismatchError(expected, actual, index, line)

        offset = (raw[1] << 8) | raw[2]
        try:
            tag = IhexTag(raw[3])
        except ValueError:
            tag = raw[3]

        return IhexRecord(index, line, count, offset, tag, raw[4:], actual, match.end())

    def apply(
        self,
        record: IhexRecord,
    ) -> bool:
        r"""Applies a decoded record.

        Arguments:
            record (:obj:`IhexRecord`):
                Decoded record.

        Returns:
            bool: The record is the End Of File record.

        Raises:
            :obj:`DuplicateAddressError`: Data address already used.

            :obj:`AddressWindowOverflowError`: Data crossing the 64 KiB
                boundary of the load offset.

            :obj:`InvalidOffsetError`: Non-data record with non-zero offset.

            :obj:`LengthMismatchError`: Extension record without exactly
                2 data bytes.

            :obj:`UnknownRecordTypeError`: Unsupported record tag.
        """

        tag = record.tag
        offset = record.offset
        data = record.data

        if tag == IhexTag.DATA:
            address = self.ulba + offset
            if address in self.blocks:
                raise DuplicateAddressError('duplicated data', record.index, record.line)

            if offset + len(data) > ADDRESS_WINDOW_SIZE:
                raise AddressWindowOverflowError('data wraps over 0xFFFF, which would be ambiguous',
                                                 record.index, record.line)

            self.blocks.set(address, data)
            return False

        if offset:
            raise InvalidOffsetError('data offset must be 0000', record.index, record.line)

        if tag == IhexTag.END_OF_FILE:
            self.eof = True
            return True

        elif tag == IhexTag.EXTENDED_SEGMENT_ADDRESS:
            self.ulba = self._extension(record) << 4

        elif tag == IhexTag.EXTENDED_LINEAR_ADDRESS:
            self.ulba = self._extension(record) << 16

        elif tag == IhexTag.START_SEGMENT_ADDRESS or tag == IhexTag.START_LINEAR_ADDRESS:
            pass  # CPU registers, not an address

        else:
            raise UnknownRecordTypeError(tag, record.index, record.line)

        return False

    @staticmethod
    def _extension(
        record: IhexRecord,
    ) -> int:

        if len(record.data) != 2:
            raise LengthMismatchError('extension record requires 2 data bytes',
                                      record.index, record.line)
        return (record.data[0] << 8) | record.data[1]


def parse(
    text: Union[str, AnyBytes],
    max_block_size: Optional[Address] = None,
    factory: Callable[[], SparseBlockSet] = SparseBlockSet,
) -> SparseBlockSet:
    r"""Parses Intel HEX text.

    Arguments:
        text (str):
            Intel HEX text, as a whole.

        max_block_size (int):
            Maximum size of the joined blocks.
            If ``None``, contiguous records are merged without limit.

        factory (callable):
            Creates the empty block set to fill.

    Returns:
        :obj:`SparseBlockSet`: Parsed and joined blocks, sorted by address.

    Raises:
        :obj:`SparseHexError`: Any kind of parsing error; no partial results
            are returned.

    Examples:
        >>> blocks = parse(':0300100041424327\n:00000001FF')
        >>> blocks.to_blocks()
        [[16, b'ABC']]
    """

    scanner = RecordScanner(text)
    decoder = RecordDecoder(factory())

    for index, match in enumerate(scanner, 1):
        record = decoder.decode(match, index)

        if decoder.apply(record):
            if record.endex != len(scanner.text):
                raise TrailingDataError('data after the end of file record', index, record.line)

            blocks = decoder.blocks.join(max_block_size)
            _logger.debug('parsed %d records into %d blocks', index, len(blocks))
            return blocks

    raise MissingEOFError('no end of file record at end of input')


class RecordEncoder:
    r"""Encodes blocks into records.

    Blocks are processed in ascending address order, and are neither merged
    nor split apart from the record data size limit; overlapping blocks must
    be resolved in advance, for example via
    :meth:`SparseBlockSet.join`.

    Extended Linear Address records are emitted whenever data enters a new
    64 KiB window, the first data included. A single End Of File record
    ends the output.

    The whole 32-bit address space is writable: a block may end exactly
    with the byte at 0xFFFFFFFF. Only data beyond it raises
    :obj:`AddressOverflowError`.

    Arguments:
        line_size (int):
            Maximum number of data bytes per record, within 1 and 255.

    Raises:
        :obj:`InvalidLineSizeError`: `line_size` out of range.
    """

    def __init__(
        self,
        line_size: int = DEFAULT_LINE_SIZE,
    ):

        if isinstance(line_size, bool) or not isinstance(line_size, int):
            raise InvalidLineSizeError(f'record size is not an integer: {line_size!r}')
        if line_size <= 0:
            raise InvalidLineSizeError('record size must be greater than zero')
        if line_size > MAX_RECORD_DATA_SIZE:
            raise InvalidLineSizeError('record size must be less than 256')

        self.line_size: int = line_size

    def iter_lines(
        self,
        blocks: Any,
    ) -> Iterator[str]:
        r"""Yields the record lines.

        Arguments:
            blocks (:obj:`SparseBlockSet`):
                Blocks to encode; anything accepted by the
                :obj:`SparseBlockSet` constructor is converted.

        Yields:
            str: Record line, without line terminator.

        Raises:
            :obj:`InvalidAddressError`: Negative block address.

            :obj:`AddressOverflowError`: Data beyond ``0xFFFFFFFF``.

            :obj:`OverlappingBlocksError`: A block starts before the end of
                the previous one.
        """

        if not isinstance(blocks, SparseBlockSet):
            blocks = SparseBlockSet(blocks)

        line_size = self.line_size
        window = -ADDRESS_WINDOW_SIZE
        written_endex = window

        for address, data in blocks.sorted_entries():
            address = check_address(address)
            view = as_view(data)
            size = len(view)
            if not size:
                continue

            if address + size > MAX_ADDRESS + 1:
                raise AddressOverflowError(f'data cannot be over 0x{MAX_ADDRESS:X}')

            if address < written_endex:
                raise OverlappingBlocksError(address, 'block overlaps with a previous block at')

            offset = 0
            while offset < size:
                cursor = address + offset

                if not window <= cursor < window + ADDRESS_WINDOW_SIZE:
                    window = cursor - (cursor % ADDRESS_WINDOW_SIZE)
                    _logger.debug('address window 0x%08X', window)
                    extension = (window >> 16).to_bytes(2, 'big')
                    yield IhexRecord.build(IhexTag.EXTENDED_LINEAR_ADDRESS, 0, extension).line

                low = cursor - window
                chunk = min(line_size, size - offset, ADDRESS_WINDOW_SIZE - low)
                yield IhexRecord.build(IhexTag.DATA, low, view[offset:(offset + chunk)]).line

                offset += chunk
                written_endex = cursor + chunk

        yield IhexRecord.build(IhexTag.END_OF_FILE).line

    def encode(
        self,
        blocks: Any,
    ) -> str:

        lines = list(self.iter_lines(blocks))
        _logger.debug('encoded %d lines', len(lines))
        return '\n'.join(lines)


def encode(
    blocks: Any,
    line_size: int = DEFAULT_LINE_SIZE,
) -> str:
    r"""Formats blocks as Intel HEX text.

    Arguments:
        blocks (:obj:`SparseBlockSet`):
            Blocks to encode.

        line_size (int):
            Maximum number of data bytes per record, within 1 and 255.

    Returns:
        str: Intel HEX text, with records separated by ``\n``, without
        any trailing line terminator.

    Examples:
        >>> print(encode(SparseBlockSet([(0x12345, b'ABCDE')]), line_size=4))
        :020000040001F9
        :04234500414243448A
        :01234900454E
        :00000001FF
    """

    return RecordEncoder(line_size).encode(blocks)
