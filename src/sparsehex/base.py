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

r"""Common stuff, shared across modules."""

from typing import Any
from typing import Iterable
from typing import Optional
from typing import Tuple
from typing import Union

from bytesparse.base import Address
from bytesparse.base import AnyBytes
from bytesparse.base import BlockList
from bytesparse.base import Value

try:
    from typing import TypeAlias
except ImportError:  # pragma: no cover
    TypeAlias = Any  # Python < 3.10

__all__ = [
    'Address',
    'AnyBytes',
    'BlockList',
    'Value',
    'BlockItem',
    'BlockItems',
    'TypeAlias',

    'DEFAULT_LINE_SIZE',
    'DEFAULT_PAGE_SIZE',
    'DEFAULT_PAD_BYTE',
    'DEFAULT_MIN_PAD_LENGTH',
    'MAX_RECORD_DATA_SIZE',
    'ADDRESS_WINDOW_SIZE',
    'MAX_ADDRESS',

    'SparseHexError',
    'InvalidInputError',
    'InvalidAddressError',
    'InvalidBufferError',
    'MalformedInputError',
    'RecordError',
    'UnknownRecordTypeError',
    'LengthMismatchError',
    'ChecksumMismatchError',
    'InvalidOffsetError',
    'AddressWindowOverflowError',
    'DuplicateAddressError',
    'TrailingDataError',
    'MissingEOFError',
    'EmptyInputError',
    'OverlappingBlocksError',
    'AddressOverflowError',
    'InvalidLineSizeError',
    'InvalidLengthError',
    'InvalidPageSizeError',

    'as_view',
    'check_address',
    'checksum',
    'checksum_two',
]

BlockItem: TypeAlias = Tuple[Address, AnyBytes]
BlockItems: TypeAlias = Iterable[BlockItem]

DEFAULT_LINE_SIZE: int = 16
r"""Default number of data bytes per emitted record."""

DEFAULT_PAGE_SIZE: Address = 1024
r"""Default page size for pagination."""

DEFAULT_PAD_BYTE: Value = 0xFF
r"""Default filler value, as found in erased flash memory."""

DEFAULT_MIN_PAD_LENGTH: Address = 64
r"""Default minimum run of pad bytes considered as padding."""

MAX_RECORD_DATA_SIZE: int = 0xFF
ADDRESS_WINDOW_SIZE: Address = 0x10000
MAX_ADDRESS: Address = 0xFFFFFFFF


class SparseHexError(ValueError):
    r"""Base class of all the errors raised by this package."""


class InvalidInputError(SparseHexError, TypeError):
    r"""Unsupported block collection shape."""


class InvalidAddressError(SparseHexError, TypeError):
    r"""Address is not a non-negative integer."""


class InvalidBufferError(SparseHexError, TypeError):
    r"""Value is not a one-dimensional byte buffer."""


class MalformedInputError(SparseHexError):
    r"""Some text between records could not be parsed.

    Attributes:
        start (int):
            Inclusive start character index of the unparsed span.

        endex (int):
            Exclusive end character index of the unparsed span.

        snippet (str):
            Leading part of the unparsed span.
    """

    def __init__(
        self,
        start: int,
        endex: int,
        snippet: str,
    ):

        super().__init__(f'malformed input: could not parse between characters '
                         f'{start} and {endex} ({snippet!r})')
        self.start = start
        self.endex = endex
        self.snippet = snippet


class RecordError(SparseHexError):
    r"""Error about a specific record.

    Attributes:
        index (int):
            Record number, starting from 1.

        line (str):
            Record text, without line terminator.
    """

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        line: Optional[str] = None,
    ):

        if index is not None:
            message = f'{message} at record {index}'
        if line:
            message = f'{message} ({line})'
        super().__init__(message)
        self.index = index
        self.line = line


class UnknownRecordTypeError(RecordError):
    r"""Record type outside of the supported range."""

    def __init__(
        self,
        tag: int,
        index: Optional[int] = None,
        line: Optional[str] = None,
    ):

        super().__init__(f'invalid record type 0x{tag:02X}', index, line)
        self.tag = tag


class LengthMismatchError(RecordError):
    r"""Declared record length does not match the actual data size."""


class ChecksumMismatchError(RecordError):
    r"""Record checksum does not match its contents."""

    def __init__(
        self,
        expected: int,
        actual: int,
        index: Optional[int] = None,
        line: Optional[str] = None,
    ):

        super().__init__(f'checksum mismatch, expected 0x{expected:02X} '
                         f'instead of 0x{actual:02X}', index, line)
        self.expected = expected
        self.actual = actual


class InvalidOffsetError(RecordError):
    r"""Non-data record with a non-zero load offset."""


class AddressWindowOverflowError(RecordError):
    r"""Data record crossing a 64 KiB address window boundary."""


class DuplicateAddressError(RecordError):
    r"""Data record repeating the address of a previous one."""


class TrailingDataError(RecordError):
    r"""Some text follows the End Of File record."""


class MissingEOFError(SparseHexError):
    r"""Records ended without an End Of File record."""


class EmptyInputError(SparseHexError):
    r"""No records at all."""


class OverlappingBlocksError(SparseHexError):
    r"""Blocks overlap where spaced or contiguous blocks are required.

    Attributes:
        address (int):
            Start address of the offending block.
    """

    def __init__(
        self,
        address: Address,
        message: str = 'overlapping data around address',
    ):

        super().__init__(f'{message} 0x{address:X}')
        self.address = address


class AddressOverflowError(SparseHexError):
    r"""Data beyond the 32-bit address range."""


class InvalidLineSizeError(SparseHexError):
    r"""Record data size out of range."""


class InvalidLengthError(SparseHexError):
    r"""Negative length."""


class InvalidPageSizeError(SparseHexError):
    r"""Page size not strictly positive."""


def check_address(
    address: Any,
) -> Address:
    r"""Validates a block start address.

    Arguments:
        address (int):
            Address to validate.

    Returns:
        int: The validated address.

    Raises:
        :obj:`InvalidAddressError`: Not a non-negative integer.

    Examples:
        >>> check_address(0x1234)
        4660
        >>> check_address(-1)
        Traceback (most recent call last):
            ...
        sparsehex.base.InvalidAddressError: negative address: -1
    """

    if isinstance(address, bool) or not isinstance(address, int):
        raise InvalidAddressError(f'address is not an integer: {address!r}')
    if address < 0:
        raise InvalidAddressError(f'negative address: {address}')
    return address


def as_view(
    value: Any,
) -> memoryview:
    r"""Wraps a byte buffer into a flat view.

    Arguments:
        value (*byte-like*):
            Object supporting the *buffer protocol*, with one dimension and
            single-byte items.

    Returns:
        :obj:`memoryview`: Unsigned byte view of `value`.

    Raises:
        :obj:`InvalidBufferError`: Not a suitable byte buffer.

    Examples:
        >>> import array
        >>> as_view(array.array('b', [-1, 1])).tolist()
        [255, 1]
        >>> as_view('text')
        Traceback (most recent call last):
            ...
        sparsehex.base.InvalidBufferError: not a byte buffer: str
    """

    try:
        view = memoryview(value)
    except TypeError:
        raise InvalidBufferError(f'not a byte buffer: {type(value).__name__}') from None

    if view.ndim != 1 or view.itemsize != 1:
        raise InvalidBufferError(f'not a flat byte buffer: {type(value).__name__}')

    if not view.c_contiguous:
        raise InvalidBufferError('non-contiguous byte buffer')

    if view.format != 'B':
        view = view.cast('B')
    return view


def checksum(
    data: Union[AnyBytes, memoryview],
) -> Value:
    r"""Computes the Intel HEX checksum.

    The checksum is the two's complement of the sum of all the bytes,
    truncated to 8 bits.

    Arguments:
        data (bytes):
            Bytes to sum.

    Returns:
        int: Checksum byte value.

    Examples:
        >>> checksum(b'\x00\x00\x00\x01')
        255
        >>> checksum(bytes.fromhex('020000041234'))
        180
    """

    return -sum(data) & 0xFF


def checksum_two(
    header: Union[AnyBytes, memoryview],
    data: Union[AnyBytes, memoryview],
) -> Value:
    r"""Computes the Intel HEX checksum of two joint byte chunks.

    Arguments:
        header (bytes):
            Leading bytes.

        data (bytes):
            Trailing bytes.

    Returns:
        int: Checksum byte value, as if `header` and `data` were
        concatenated.

    Examples:
        >>> checksum_two(b'\x02\x00\x00\x04', b'\x12\x34')
        180
    """

    return -(sum(header) + sum(data)) & 0xFF
