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

r"""Sparse byte blocks and Intel HEX files.

Firmware and EEPROM images seldom fill their whole addressing space
(*e.g.* 4 GiB): data lives in a few sparse *blocks*, each one anchored at
an absolute address.

A :obj:`SparseBlockSet` maps the start address of each block to its data,
for example:

+---+---+---+---+---+---+---+---+---+
| 0 | 1 | 2 | 3 | 4 | 5 | 6 | 7 | 8 |
+===+===+===+===+===+===+===+===+===+
|   |[A | B | C]|   |[x | y | z]|   |
+---+---+---+---+---+---+---+---+---+

>>> blocks = SparseBlockSet([(1, b'ABC'), (5, b'xyz')])

Blocks are *overlapping* when at least an address is occupied by more
of them:

+---+---+---+---+---+---+---+---+---+
| 0 | 1 | 2 | 3 | 4 | 5 | 6 | 7 | 8 |
+===+===+===+===+===+===+===+===+===+
|   |[A | B | C]|   |   |   |   |   |
+---+---+---+---+---+---+---+---+---+
|   |   |   |[x | y | z]|   |   |   |
+---+---+---+---+---+---+---+---+---+

>>> blocks = SparseBlockSet([(1, b'ABC'), (3, b'xyz')])
>>> blocks.join()
Traceback (most recent call last):
    ...
sparsehex.base.OverlappingBlocksError: overlapping data around address 0x3

Instead, *contiguous* blocks are non-overlapping, and get merged together
by :meth:`SparseBlockSet.join`:

+---+---+---+---+---+---+---+---+---+
| 0 | 1 | 2 | 3 | 4 | 5 | 6 | 7 | 8 |
+===+===+===+===+===+===+===+===+===+
|   |[A | B | C]|   |   |   |   |   |
+---+---+---+---+---+---+---+---+---+
|   |   |   |   |[x | y | z]|   |   |
+---+---+---+---+---+---+---+---+---+

>>> blocks = SparseBlockSet([(1, b'ABC'), (4, b'xyz')])
>>> blocks.join().to_blocks()
[[1, b'ABCxyz']]

Blocks are read from and written to the Intel HEX format via
:func:`parse` and :func:`encode`:

>>> text = encode(blocks, line_size=4)
>>> parse(text) == blocks.join()
True
"""

__version__ = '0.1.0'

from .base import *  # noqa: F401, F403
from .blocks import SparseBlockSet  # noqa: F401
from .blocks import flatten_overlaps  # noqa: F401
from .blocks import overlap_block_sets  # noqa: F401
from .ihex import IhexRecord  # noqa: F401
from .ihex import IhexTag  # noqa: F401
from .ihex import RecordDecoder  # noqa: F401
from .ihex import RecordEncoder  # noqa: F401
from .ihex import RecordScanner  # noqa: F401
from .ihex import encode  # noqa: F401
from .ihex import parse  # noqa: F401
