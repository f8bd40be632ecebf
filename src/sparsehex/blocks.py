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

r"""Sparse sets of byte blocks.

A :obj:`SparseBlockSet` maps absolute start addresses to byte buffers, like
the blocks of a firmware image. Raw insertion keeps whatever the caller
provides; the algorithms (:meth:`SparseBlockSet.join`,
:meth:`SparseBlockSet.slice`, :meth:`SparseBlockSet.paginate`, ...) always
return a new set sorted by address.
"""

import collections.abc
import logging
from bisect import bisect_right
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union

from bytesparse import Memory
from bytesparse.base import STR_MAX_CONTENT_SIZE

from .base import DEFAULT_LINE_SIZE
from .base import DEFAULT_MIN_PAD_LENGTH
from .base import DEFAULT_PAD_BYTE
from .base import DEFAULT_PAGE_SIZE
from .base import Address
from .base import AnyBytes
from .base import BlockItem
from .base import BlockList
from .base import InvalidAddressError
from .base import InvalidInputError
from .base import InvalidLengthError
from .base import InvalidPageSizeError
from .base import OverlappingBlocksError
from .base import TypeAlias
from .base import Value
from .base import as_view
from .base import check_address

_logger = logging.getLogger(__name__)

OverlapTuple: TypeAlias = Tuple[Any, memoryview]
Overlaps: TypeAlias = Dict[Address, List[OverlapTuple]]


def _parse_key(
    key: Any,
) -> Address:

    if isinstance(key, str):
        text = key.strip()
        try:
            return int(text, 10)
        except ValueError:
            pass
        try:
            return int(text, 0)
        except ValueError:
            raise InvalidInputError(f'key is not a number: {key!r}') from None
    return key


class SparseBlockSet:
    r"""Sparse set of byte blocks.

    Each entry is a *block*: the key is the start address, the value is the
    byte buffer stored from that address onwards.

    +---+---+---+---+---+---+---+---+---+
    | 0 | 1 | 2 | 3 | 4 | 5 | 6 | 7 | 8 |
    +===+===+===+===+===+===+===+===+===+
    |   |[A | B | C]|   |   |[x | y | z]|
    +---+---+---+---+---+---+---+---+---+

    >>> blocks = SparseBlockSet([(1, b'ABC'), (6, b'xyz')])
    >>> blocks.sorted_keys()
    [1, 6]

    Raw insertion through :meth:`set` checks neither ordering nor overlapping;
    both are checked by :meth:`join` and by the Intel HEX encoder.

    Arguments:
        blocks:
            Optional initial blocks, either as an iterable of
            ``(address, data)`` pairs or as a mapping from address to data.
            Mapping keys may be strings holding integers, like JSON object
            keys.

    Raises:
        :obj:`InvalidInputError`: Unsupported `blocks` shape.

    Attributes:
        _blocks (dict):
            Mapping from start address to byte buffer.
    """

    def __init__(
        self,
        blocks: Optional[Union[Iterable[BlockItem], Mapping[Any, AnyBytes]]] = None,
    ):

        self._blocks: Dict[Address, AnyBytes] = {}

        if blocks is None:
            pass

        elif isinstance(blocks, SparseBlockSet):
            self._blocks.update(blocks._blocks)

        elif isinstance(blocks, collections.abc.Mapping):
            for key, data in blocks.items():
                self.set(_parse_key(key), data)

        elif (isinstance(blocks, collections.abc.Iterable) and
              not isinstance(blocks, (str, bytes, bytearray, memoryview))):
            for item in blocks:
                if not isinstance(item, (tuple, list)) or len(item) != 2:
                    raise InvalidInputError('blocks must be an iterable of (address, data) pairs')
                self.set(item[0], item[1])

        else:
            raise InvalidInputError('blocks must be an iterable of (address, data) pairs')

    def __repr__(
        self,
    ) -> str:

        keys = self.sorted_keys()
        if keys:
            start = keys[0]
            endex = max(address + len(as_view(self._blocks[address])) for address in keys)
            span = f'0x{start:X}:0x{endex:X}'
        else:
            span = ':'
        return f'<{type(self).__name__}[{span}]@0x{id(self):X}>'

    def __str__(
        self,
    ) -> str:
        r"""String representation.

        If the overall data size is lesser than ``STR_MAX_CONTENT_SIZE``, then
        the set is represented as a list of blocks.

        If exceeding, it is equivalent to :meth:`__repr__`.

        Returns:
            str: String representation.

        Examples:
            >>> str(SparseBlockSet([(7, b'xyz'), (1, b'ABC')]))
            "[[1, b'ABC'], [7, b'xyz']]"
        """

        content_size = sum(len(as_view(data)) for data in self._blocks.values())
        if content_size < STR_MAX_CONTENT_SIZE:
            return repr(self.to_blocks())
        else:
            return repr(self)

    def __eq__(
        self,
        other: Any,
    ) -> bool:
        r"""Equality comparison.

        Two sets are equal when they hold the same addresses, and the data
        at each address has the same byte values. The type of the buffers is
        not relevant.

        Arguments:
            other (SparseBlockSet):
                Set to compare with.

        Returns:
            bool: `self` is equal to `other`.

        Examples:
            >>> a = SparseBlockSet([(1, b'ABC')])
            >>> b = SparseBlockSet([(1, bytearray(b'ABC'))])
            >>> a == b
            True
            >>> a == SparseBlockSet([(1, b'ABD')])
            False
        """

        if not isinstance(other, SparseBlockSet):
            return NotImplemented

        if self._blocks.keys() != other._blocks.keys():
            return False

        for address, data in self._blocks.items():
            if as_view(data) != as_view(other._blocks[address]):
                return False
        return True

    def __len__(
        self,
    ) -> int:

        return len(self._blocks)

    def __bool__(
        self,
    ) -> bool:

        return bool(self._blocks)

    def __contains__(
        self,
        address: Any,
    ) -> bool:

        return address in self._blocks

    def __iter__(
        self,
    ) -> Iterator[Address]:

        yield from self._blocks

    def __getitem__(
        self,
        address: Address,
    ) -> AnyBytes:

        return self._blocks[address]

    def __setitem__(
        self,
        address: Address,
        data: AnyBytes,
    ) -> None:

        self.set(address, data)

    def __delitem__(
        self,
        address: Address,
    ) -> None:

        del self._blocks[address]

    def __copy__(
        self,
    ) -> 'SparseBlockSet':

        return type(self)(self)

    def __deepcopy__(
        self,
        memo: Optional[Dict[int, Any]] = None,
    ) -> 'SparseBlockSet':

        return self.clone()

    @property
    def size(
        self,
    ) -> int:
        r"""int: Number of blocks."""

        return len(self._blocks)

    def set(
        self,
        address: Address,
        data: AnyBytes,
    ) -> None:
        r"""Stores a block.

        Any previous block at the same `address` is replaced. Lengths,
        ordering, and overlapping are not checked.

        Arguments:
            address (int):
                Block start address.

            data (bytes):
                Block data, as any one-dimensional byte buffer.
                Stored as is, without copying.

        Raises:
            :obj:`InvalidAddressError`: `address` is not a non-negative
                integer.

            :obj:`InvalidBufferError`: `data` is not a byte buffer.

        Examples:
            >>> blocks = SparseBlockSet()
            >>> blocks.set(0x100, b'\x01\x02')
            >>> blocks.get(0x100)
            b'\x01\x02'
            >>> blocks.set(0x100, 'text')
            Traceback (most recent call last):
                ...
            sparsehex.base.InvalidBufferError: not a byte buffer: str
        """

        address = check_address(address)
        as_view(data)
        self._blocks[address] = data

    def get(
        self,
        address: Address,
        default: Optional[AnyBytes] = None,
    ) -> Optional[AnyBytes]:

        return self._blocks.get(address, default)

    def has(
        self,
        address: Address,
    ) -> bool:

        return address in self._blocks

    def delete(
        self,
        address: Address,
    ) -> bool:
        r"""Deletes a block.

        Arguments:
            address (int):
                Block start address.

        Returns:
            bool: A block was actually deleted.
        """

        return self._blocks.pop(address, None) is not None

    def clear(
        self,
    ) -> None:

        self._blocks.clear()

    def keys(
        self,
    ) -> Iterator[Address]:

        return iter(self._blocks.keys())

    def values(
        self,
    ) -> Iterator[AnyBytes]:

        return iter(self._blocks.values())

    def entries(
        self,
    ) -> Iterator[BlockItem]:

        return iter(self._blocks.items())

    items = entries

    def for_each(
        self,
        callback: Callable[[Address, AnyBytes], Any],
    ) -> None:

        for address, data in list(self._blocks.items()):
            callback(address, data)

    def sorted_keys(
        self,
    ) -> List[Address]:
        r"""Block addresses, in ascending order.

        Returns:
            list of int: Sorted block addresses.
        """

        return sorted(self._blocks)

    def sorted_entries(
        self,
    ) -> List[BlockItem]:
        r"""Blocks, in ascending address order.

        Returns:
            list of blocks: Sorted ``(address, data)`` pairs.
        """

        blocks = self._blocks
        return [(address, blocks[address]) for address in sorted(blocks)]

    def to_blocks(
        self,
    ) -> BlockList:
        r"""Exports into blocks.

        Returns:
            list of blocks: Sorted ``[address, bytes]`` pairs, with standalone
            :obj:`bytes` copies of the data.

        Examples:
            >>> SparseBlockSet({'16': b'xyz', '0x2': bytearray(b'AB')}).to_blocks()
            [[2, b'AB'], [16, b'xyz']]
        """

        return [[address, bytes(as_view(data))] for address, data in self.sorted_entries()]

    def clone(
        self,
    ) -> 'SparseBlockSet':
        r"""Deep copy.

        Returns:
            :obj:`SparseBlockSet`: Copy of the set, where each block data is
            copied into a new :obj:`bytearray`.
        """

        cloned = type(self)()
        for address, data in self._blocks.items():
            cloned._blocks[address] = bytearray(as_view(data))
        return cloned

    def join(
        self,
        max_block_size: Optional[Address] = None,
    ) -> 'SparseBlockSet':
        r"""Joins contiguous blocks.

        Contiguous blocks are merged together, as long as the merged block
        does not get bigger than `max_block_size`. Blocks bigger than
        `max_block_size` on their own are kept as they are.

        Arguments:
            max_block_size (int):
                Maximum size of a merged block.
                If ``None``, no limit is applied.

        Returns:
            :obj:`SparseBlockSet`: Joined blocks, sorted by address, each one
            copied into a new :obj:`bytearray`.

        Raises:
            :obj:`OverlappingBlocksError`: Some blocks overlap.

        Examples:
            +---+---+---+---+---+---+---+---+---+---+
            | 0 | 1 | 2 | 3 | 4 | 5 | 6 | 7 | 8 | 9 |
            +===+===+===+===+===+===+===+===+===+===+
            |   |[A | B]|   |   |   |   |   |   |   |
            +---+---+---+---+---+---+---+---+---+---+
            |   |   |   |[C]|   |   |   |   |   |   |
            +---+---+---+---+---+---+---+---+---+---+
            |   |   |   |   |   |   |[x | y | z]|   |
            +---+---+---+---+---+---+---+---+---+---+
            |   |[A | B | C]|   |   |[x | y | z]|   |
            +---+---+---+---+---+---+---+---+---+---+

            >>> blocks = SparseBlockSet([(6, b'xyz'), (1, b'AB'), (3, b'C')])
            >>> blocks.join().to_blocks()
            [[1, b'ABC'], [6, b'xyz']]
            >>> blocks.join(2).to_blocks()
            [[1, b'AB'], [3, b'C'], [6, b'xyz']]
        """

        runs: List[Tuple[Address, List[memoryview]]] = []
        run_start = -1
        run_endex = -1

        for address in sorted(self._blocks):
            view = as_view(self._blocks[address])
            size = len(view)

            if (address == run_endex and
                    (max_block_size is None or
                     (run_endex - run_start) + size <= max_block_size)):
                runs[-1][1].append(view)
                run_endex += size

            elif address >= run_endex:
                runs.append((address, [view]))
                run_start = address
                run_endex = address + size

            else:
                raise OverlappingBlocksError(address)

        joined = type(self)()
        for address, views in runs:
            joined._blocks[address] = bytearray().join(views)
        return joined

    def slice(
        self,
        address: Address,
        length: Optional[Address] = None,
    ) -> 'SparseBlockSet':
        r"""Extracts an address range.

        Arguments:
            address (int):
                Inclusive start address of the range.

            length (int):
                Length of the range.
                If ``None``, the range extends to infinity.

        Returns:
            :obj:`SparseBlockSet`: Parts of the blocks falling within the
            range, at their original addresses, sorted by address.
            Block data are :obj:`memoryview` objects referencing the original
            buffers.

        Raises:
            :obj:`InvalidLengthError`: Negative `length`.

        Examples:
            +---+---+---+---+---+---+---+---+---+---+---+---+---+---+---+
            | 10| 11| 12| 13| 14| 15| 16| 17| 18| 19| 20| 21| 22| 23| 24|
            +===+===+===+===+===+===+===+===+===+===+===+===+===+===+===+
            |[A | B | C | D | E]|   |   |   |   |   |[x | y | z]|   |   |
            +---+---+---+---+---+---+---+---+---+---+---+---+---+---+---+
            |   |   |[C | D]|   |   |   |   |   |   |   |   |   |   |   |
            +---+---+---+---+---+---+---+---+---+---+---+---+---+---+---+

            >>> blocks = SparseBlockSet([(10, b'ABCDE'), (20, b'xyz')])
            >>> blocks.slice(12, 2).to_blocks()
            [[12, b'CD']]
            >>> blocks.slice(13).to_blocks()
            [[13, b'DE'], [20, b'xyz']]
        """

        if length is not None and length < 0:
            raise InvalidLengthError('length of the slice cannot be negative')

        endex = None if length is None else address + length
        sliced = type(self)()

        for block_start in sorted(self._blocks):
            view = as_view(self._blocks[block_start])
            block_endex = block_start + len(view)
            start = max(address, block_start)
            stop = block_endex if endex is None else min(endex, block_endex)

            if start < stop:
                sliced._blocks[start] = view[(start - block_start):(stop - block_start)]

        return sliced

    def paginate(
        self,
        page_size: Address = DEFAULT_PAGE_SIZE,
        pad: Value = DEFAULT_PAD_BYTE,
    ) -> 'SparseBlockSet':
        r"""Splits data into aligned pages.

        Each page starts at a multiple of `page_size` and is exactly
        `page_size` bytes long. Only pages holding some data are created.
        Where no data is available, the page is filled with `pad`.

        If blocks overlap, later blocks (by address) overwrite earlier ones.

        Arguments:
            page_size (int):
                Size (and alignment) of each page.

            pad (int):
                Filler byte value.

        Returns:
            :obj:`SparseBlockSet`: Pages sorted by address, each one being
            a new :obj:`bytearray`.

        Raises:
            :obj:`InvalidPageSizeError`: `page_size` is not positive.

        Examples:
            +---+---+---+---+---+---+---+---+---+---+---+---+---+
            | 0 | 1 | 2 | 3 | 4 | 5 | 6 | 7 | 8 | 9 | 10| 11| 12|
            +===+===+===+===+===+===+===+===+===+===+===+===+===+
            |   |   |   |[A | B | C]|   |   |   |   |   |[x]|   |
            +---+---+---+---+---+---+---+---+---+---+---+---+---+
            |[$ | $ | $ | A]|[B | C | $ | $]|[$ | $ | $ | x]|   |
            +---+---+---+---+---+---+---+---+---+---+---+---+---+

            >>> blocks = SparseBlockSet([(3, b'ABC'), (11, b'x')])
            >>> blocks.paginate(4, ord('$')).to_blocks()
            [[0, b'$$$A'], [4, b'BC$$'], [8, b'$$$x']]
        """

        if page_size <= 0:
            raise InvalidPageSizeError('page size must be greater than zero')

        pages: Dict[Address, bytearray] = {}
        filler = bytes([pad]) * page_size

        for block_start in sorted(self._blocks):
            view = as_view(self._blocks[block_start])
            if not view:
                continue
            block_endex = block_start + len(view)
            page_start = block_start - (block_start % page_size)

            while page_start < block_endex:
                page_endex = page_start + page_size
                page = pages.get(page_start)
                if page is None:
                    page = bytearray(filler)
                    pages[page_start] = page

                start = max(block_start, page_start)
                stop = min(block_endex, page_endex)
                page[(start - page_start):(stop - page_start)] = \
                    view[(start - block_start):(stop - block_start)]
                page_start = page_endex

        paged = type(self)()
        for page_start in sorted(pages):
            paged._blocks[page_start] = pages[page_start]
        return paged

    @classmethod
    def from_padded_buffer(
        cls,
        data: AnyBytes,
        pad: Value = DEFAULT_PAD_BYTE,
        min_pad_length: Address = DEFAULT_MIN_PAD_LENGTH,
        offset: Address = 0,
    ) -> 'SparseBlockSet':
        r"""Strips padding from a flat buffer.

        Any run of at least `min_pad_length` consecutive `pad` bytes is
        considered padding, and removed. Shorter runs are kept within the
        surrounding data.

        Arguments:
            data (bytes):
                Flat buffer, as a one-dimensional byte buffer.

            pad (int):
                Padding byte value.

            min_pad_length (int):
                Minimum length of a padding run.

            offset (int):
                Address of the first byte of `data`.

        Returns:
            :obj:`SparseBlockSet`: Non-padding blocks, sorted by address, as
            :obj:`memoryview` objects referencing `data`.

        Raises:
            :obj:`InvalidBufferError`: `data` is not a byte buffer.

            :obj:`InvalidLengthError`: `min_pad_length` is not positive.

        Examples:
            +---+---+---+---+---+---+---+---+---+---+---+---+
            | 0 | 1 | 2 | 3 | 4 | 5 | 6 | 7 | 8 | 9 | 10| 11|
            +===+===+===+===+===+===+===+===+===+===+===+===+
            |[. | . | . | A | B | . | C | . | . | . | x | y]|
            +---+---+---+---+---+---+---+---+---+---+---+---+
            |   |   |   |[A | B | . | C]|   |   |   |[x | y]|
            +---+---+---+---+---+---+---+---+---+---+---+---+

            >>> blocks = SparseBlockSet.from_padded_buffer(b'...AB.C...xy', ord('.'), 2)
            >>> blocks.to_blocks()
            [[3, b'AB.C'], [10, b'xy']]
        """

        view = as_view(data)
        offset = check_address(offset)
        if min_pad_length < 1:
            raise InvalidLengthError('minimum padding length must be greater than zero')

        blocks = cls()
        pad_count = 0
        first_data = 0
        last_data = -1
        skipping = False

        for index, value in enumerate(view):
            if value == pad:
                pad_count += 1
                if pad_count >= min_pad_length:
                    if not skipping and last_data >= 0:
                        blocks._blocks[offset + first_data] = view[first_data:(last_data + 1)]
                    skipping = True
            else:
                if skipping:
                    skipping = False
                    first_data = index
                last_data = index
                pad_count = 0

        if not skipping and last_data >= 0:
            blocks._blocks[offset + first_data] = view[first_data:]

        return blocks

    def get_uint32(
        self,
        offset: Address,
        little_endian: bool = False,
    ) -> Optional[int]:
        r"""Reads a 32-bit unsigned integer.

        The 4 bytes must be held by the same block.

        Arguments:
            offset (int):
                Address of the first byte.

            little_endian (bool):
                Little-endian byte order; big-endian otherwise.

        Returns:
            int: The read value, or ``None`` if no block holds all of the 4
            bytes.

        Examples:
            >>> blocks = SparseBlockSet([(0x100, b'\x12\x34\x56\x78\x9A')])
            >>> hex(blocks.get_uint32(0x100))
            '0x12345678'
            >>> hex(blocks.get_uint32(0x101, little_endian=True))
            '0x9a785634'
            >>> blocks.get_uint32(0x102) is None
            True
        """

        for block_start, data in self._blocks.items():
            view = as_view(data)
            if block_start <= offset and offset + 4 <= block_start + len(view):
                index = offset - block_start
                byteorder = 'little' if little_endian else 'big'
                return int.from_bytes(view[index:(index + 4)], byteorder)
        return None

    @classmethod
    def from_memory(
        cls,
        memory: Memory,
    ) -> 'SparseBlockSet':
        r"""Imports from a :obj:`bytesparse.Memory`.

        Arguments:
            memory (:obj:`bytesparse.Memory`):
                Source memory.

        Returns:
            :obj:`SparseBlockSet`: Copy of the memory blocks.

        Raises:
            :obj:`InvalidAddressError`: Some data has a negative address.
        """

        blocks = cls()
        for address, view in memory.blocks():
            if address < 0:
                raise InvalidAddressError(f'negative address: {address}')
            blocks._blocks[address] = bytearray(view)
        return blocks

    def to_memory(
        self,
    ) -> Memory:
        r"""Exports into a :obj:`bytesparse.Memory`.

        Blocks are written in ascending address order, so that overlapping
        data of later blocks overwrite earlier ones.

        Returns:
            :obj:`bytesparse.Memory`: Memory holding a copy of the data.

        Examples:
            >>> memory = SparseBlockSet([(5, b'xyz'), (1, b'AB'), (3, b'C')]).to_memory()
            >>> [list(block) for block in memory.to_blocks()]
            [[1, b'ABC'], [5, b'xyz']]
        """

        memory = Memory()
        for address, data in self.sorted_entries():
            memory.write(address, bytes(as_view(data)))
        return memory

    @classmethod
    def from_hex(
        cls,
        text: Union[str, bytes],
        max_block_size: Optional[Address] = None,
    ) -> 'SparseBlockSet':
        r"""Parses Intel HEX text.

        See Also:
            :func:`sparsehex.ihex.parse`
        """
        from .ihex import parse

        return parse(text, max_block_size=max_block_size, factory=cls)

    def to_hex(
        self,
        line_size: int = DEFAULT_LINE_SIZE,
    ) -> str:
        r"""Formats as Intel HEX text.

        See Also:
            :func:`sparsehex.ihex.encode`
        """
        from .ihex import encode

        return encode(self, line_size=line_size)

    @staticmethod
    def overlap(
        block_sets: Union[Mapping[Any, 'SparseBlockSet'], Iterable[Tuple[Any, 'SparseBlockSet']]],
    ) -> Overlaps:

        return overlap_block_sets(block_sets)

    @staticmethod
    def flatten_overlaps(
        overlaps: Overlaps,
    ) -> 'SparseBlockSet':

        return flatten_overlaps(overlaps)


def overlap_block_sets(
    block_sets: Union[Mapping[Any, SparseBlockSet], Iterable[Tuple[Any, SparseBlockSet]]],
) -> Overlaps:
    r"""Analyzes overlapping data among block sets.

    The address space is split at every *cut*, that is any address where
    some block starts or ends. For each interval between two consecutive
    cuts, the data of each set covering that interval is collected.

    Arguments:
        block_sets:
            Named block sets, either as a mapping from name to set, or as an
            iterable of ``(name, set)`` pairs. Their order is kept within
            the results.

    Returns:
        dict: Mapping from interval start address to the list of
        ``(name, data)`` pairs covering that interval, in input order.
        Intervals without data are omitted. Data are :obj:`memoryview`
        objects referencing the original buffers.

    Examples:
        +---+---+---+---+---+---+---+---+---+
        | 0 | 1 | 2 | 3 | 4 | 5 | 6 | 7 | 8 |
        +===+===+===+===+===+===+===+===+===+
        |[A | B | C | D]|   |   |   |   |   |
        +---+---+---+---+---+---+---+---+---+
        |   |   |[x | y | z]|   |[!]|   |   |
        +---+---+---+---+---+---+---+---+---+

        >>> first = SparseBlockSet([(0, b'ABCD')])
        >>> second = SparseBlockSet([(2, b'xyz'), (6, b'!')])
        >>> overlaps = overlap_block_sets({'a': first, 'b': second})
        >>> [(cut, [(name, bytes(data)) for name, data in tuples])
        ...  for cut, tuples in overlaps.items()]
        [(0, [('a', b'AB')]), (2, [('a', b'CD'), ('b', b'xy')]), (4, [('b', b'z')]), (6, [('b', b'!')])]
    """

    if isinstance(block_sets, collections.abc.Mapping):
        block_sets = block_sets.items()

    named = []
    cuts = set()

    for name, blocks in block_sets:
        if not isinstance(blocks, SparseBlockSet):
            blocks = SparseBlockSet(blocks)
        keys = blocks.sorted_keys()
        views = [as_view(blocks[address]) for address in keys]
        named.append((name, keys, views))

        for address, view in zip(keys, views):
            cuts.add(address)
            cuts.add(address + len(view))

    ordered_cuts = sorted(cuts)
    overlaps: Overlaps = {}

    for cut, next_cut in zip(ordered_cuts, ordered_cuts[1:]):
        tuples = []

        for name, keys, views in named:
            index = bisect_right(keys, cut) - 1
            if index >= 0:
                block_start = keys[index]
                view = views[index]
                sub_start = cut - block_start
                if sub_start < len(view):
                    tuples.append((name, view[sub_start:(next_cut - block_start)]))

        if tuples:
            overlaps[cut] = tuples

    _logger.debug('overlap analysis: %d sets, %d cuts, %d intervals',
                  len(named), len(ordered_cuts), len(overlaps))
    return overlaps


def flatten_overlaps(
    overlaps: Overlaps,
) -> SparseBlockSet:
    r"""Flattens overlap analysis results.

    Each interval keeps only the data of its last contributor, so that the
    block sets given later to :func:`overlap_block_sets` take precedence.

    Arguments:
        overlaps (dict):
            Results of :func:`overlap_block_sets`.

    Returns:
        :obj:`SparseBlockSet`: One block per interval, sorted by address.
        Adjacent intervals are not joined.

    Examples:
        >>> first = SparseBlockSet([(0, b'ABCD')])
        >>> second = SparseBlockSet([(2, b'xyz')])
        >>> flat = flatten_overlaps(overlap_block_sets([('a', first), ('b', second)]))
        >>> flat.to_blocks()
        [[0, b'AB'], [2, b'xy'], [4, b'z']]
        >>> flat.join().to_blocks()
        [[0, b'ABxyz']]
    """

    flat = SparseBlockSet()
    for address in sorted(overlaps):
        tuples = overlaps[address]
        if tuples:
            flat.set(address, tuples[-1][1])
    return flat
