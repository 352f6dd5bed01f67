"""Simulated process heap: a brk segment, anonymous mappings and block metadata.

The heap keeps an address space made of one contiguous program-break segment
and any number of anonymous mappings.  Every allocated region starts with a
metadata header (a :class:`Block`).  Headers are linked into a single list in
allocation order, which the allocator walks to reuse, split and merge blocks.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple

ALIGNMENT = 8
HEAP_SIZE = 128 * 1024  # initial brk size, also the mmap threshold
PAGE_SIZE = 4096

BRK_BASE = 0x0000_5555_0000_0000
MMAP_BASE = 0x0000_7F00_0000_0000


def align(size: int) -> int:
    """Round ``size`` up to the next multiple of the alignment."""
    return (size + ALIGNMENT - 1) & ~(ALIGNMENT - 1)


# size (8) + status (4, padded to 8) + prev (8) + next (8)
META_SIZE = align(8 + 8 + 8 + 8)


class HeapError(Exception):
    """Raised when a system-level heap operation fails."""


class Status(enum.IntEnum):
    FREE = 0
    ALLOC = 1
    MAPPED = 2


@dataclass(eq=False)
class Block:
    """Metadata header of one heap block."""

    address: int
    size: int
    status: Status
    prev: Optional["Block"] = field(default=None, repr=False)
    next: Optional["Block"] = field(default=None, repr=False)

    @property
    def data_address(self) -> int:
        """Address of the payload that follows the header."""
        return self.address + META_SIZE

    @property
    def end(self) -> int:
        """Address one past the end of the payload."""
        return self.data_address + self.size


class Heap:
    """Address space with a program break, mappings and a block list."""

    def __init__(self) -> None:
        self.base_heap: Optional[Block] = None
        self.last_brk_block: Optional[Block] = None
        self.last_free_block: Optional[Block] = None
        self.headers: Dict[int, Block] = {}
        self._brk = bytearray()
        self._mapped: Dict[int, bytearray] = {}
        self._next_map = MMAP_BASE

    # ----- address space -------------------------------------------------

    def sbrk(self, increment: int) -> int:
        """Move the program break by ``increment`` and return the old break."""
        old_break = BRK_BASE + len(self._brk)
        new_length = len(self._brk) + increment
        if new_length < 0:
            raise HeapError("brk failed")
        if increment >= 0:
            self._brk.extend(bytes(increment))
        else:
            del self._brk[new_length:]
            self._drop_headers(BRK_BASE + new_length, old_break)
        return old_break

    def mmap(self, length: int) -> int:
        """Map ``length`` zeroed bytes (rounded up to pages) and return the address."""
        if length <= 0:
            raise HeapError("mmap failed")
        rounded = -(-length // PAGE_SIZE) * PAGE_SIZE
        address = self._next_map
        self._mapped[address] = bytearray(rounded)
        # leave an unmapped guard page between mappings
        self._next_map += rounded + PAGE_SIZE
        return address

    def munmap(self, address: int, length: int) -> None:
        """Remove the mapping that starts at ``address``."""
        region = self._mapped.get(address)
        if region is None or length <= 0:
            raise HeapError("munmap failed")
        del self._mapped[address]
        self._drop_headers(address, address + len(region))

    def read(self, address: int, size: int) -> bytes:
        """Return ``size`` bytes starting at ``address``."""
        buffer, offset = self._locate(address, size)
        return bytes(buffer[offset:offset + size])

    def write(self, address: int, data: bytes) -> None:
        """Store ``data`` starting at ``address``."""
        buffer, offset = self._locate(address, len(data))
        buffer[offset:offset + len(data)] = data

    def zero(self, address: int, size: int) -> None:
        """Fill ``size`` bytes starting at ``address`` with zeros."""
        buffer, offset = self._locate(address, size)
        buffer[offset:offset + size] = bytes(size)

    def _locate(self, address: int, size: int) -> Tuple[bytearray, int]:
        if size < 0:
            raise HeapError(f"invalid access size {size}")
        if BRK_BASE <= address and address + size <= BRK_BASE + len(self._brk):
            return self._brk, address - BRK_BASE
        for start, region in self._mapped.items():
            if start <= address and address + size <= start + len(region):
                return region, address - start
        raise HeapError(f"invalid memory access at {address:#x}")

    def _drop_headers(self, start: int, stop: int) -> None:
        for address in [a for a in self.headers if start <= a < stop]:
            del self.headers[address]

    def _place(self, address: int, size: int, status: Status) -> Block:
        block = Block(address, size, status)
        self.headers[address] = block
        return block

    # ----- block list ----------------------------------------------------

    def blocks(self) -> Iterator[Block]:
        """Iterate over the block list from its head."""
        block = self.base_heap
        while block is not None:
            yield block
            block = block.next

    def expand_heap(self, size: int, threshold: int) -> Block:
        """Create a new block and append it to the end of the list."""
        if self.base_heap is None:
            raise HeapError("heap is not initialised")
        if size < threshold:
            if self.last_brk_block is None:
                size = HEAP_SIZE - META_SIZE
            address = self.sbrk(size + META_SIZE)
            block = self._place(address, size, Status.ALLOC)
            self.last_brk_block = self.last_free_block = block
        else:
            address = self.mmap(size + META_SIZE)
            block = self._place(address, size, Status.MAPPED)

        tail = self.base_heap
        while tail.next is not None:
            tail = tail.next
        tail.next = block
        block.prev = tail
        return block

    def alloc_heap(self, size: int, threshold: int) -> Block:
        """Create the first block of the list."""
        if size < threshold:
            if self.last_brk_block is None:
                size = HEAP_SIZE - META_SIZE
            address = self.sbrk(HEAP_SIZE)
            block = self._place(address, size, Status.ALLOC)
            self.last_brk_block = self.last_free_block = block
        else:
            address = self.mmap(size + META_SIZE)
            block = self._place(address, size, Status.MAPPED)
        self.base_heap = block
        return block

    def find_free_block(self, size: int) -> Optional[Block]:
        """Pick the best-fitting free block, growing the last free one if needed.

        The chosen block is marked allocated.  Returns ``None`` when nothing fits.
        """
        best_fit: Optional[Block] = None
        for block in self.blocks():
            fits = block.status == Status.FREE and block.size >= size
            if fits and (best_fit is None or best_fit.size > block.size):
                best_fit = block
            elif (
                best_fit is None
                and block.status == Status.FREE
                and block is self.last_free_block
            ):
                self.sbrk(size - block.size)
                block.size = size
                block.status = Status.ALLOC
                return block
        if best_fit is not None:
            best_fit.status = Status.ALLOC
        return best_fit

    def split_block(self, block: Block, size: int) -> Block:
        """Cut ``block`` to ``size`` and turn the rest into a free block.

        Nothing is split when the rest could not hold a header and 8 bytes.
        """
        if block.size < size + META_SIZE + 8:
            return block

        remainder = self._place(
            block.address + META_SIZE + size,
            block.size - size - META_SIZE,
            Status.FREE,
        )
        remainder.next = block.next
        remainder.prev = block
        if block.next is not None:
            block.next.prev = remainder

        block.size = size
        block.next = remainder

        if block is self.last_brk_block:
            self.last_brk_block = remainder
        if self.last_free_block is None or self.last_free_block.address < remainder.address:
            self.last_free_block = remainder
        return block

    def coalesce(self, block: Block) -> Block:
        """Merge ``block`` with free neighbours, skipping mapped blocks.

        Returns the block that holds the merged region.
        """
        following = block.next
        while following is not None:
            if following.status == Status.MAPPED:
                following = following.next
                continue
            if following.status != Status.FREE:
                break
            if following is self.last_free_block:
                self.last_free_block = block
            block.size += following.size + META_SIZE
            if following.prev is not None:
                following.prev.next = following.next
            if following.next is not None:
                following.next.prev = following.prev
            following = following.next

        if block.status == Status.FREE:
            preceding = block.prev
            while preceding is not None:
                if preceding.status == Status.MAPPED:
                    preceding = preceding.prev
                    continue
                if preceding.status != Status.FREE:
                    break
                if block is self.last_free_block:
                    self.last_free_block = preceding
                preceding.size += block.size + META_SIZE
                if block.prev is not None:
                    block.prev.next = block.next
                if block.next is not None:
                    block.next.prev = block.prev
                block = preceding
                preceding = block.prev

        return block