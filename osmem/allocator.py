"""malloc/calloc/realloc/free on top of the simulated heap.

Small requests are carved out of the program-break segment using best fit,
splitting and coalescing; requests at or above the threshold get their own
anonymous mapping.  Addresses handed out are payload addresses, as plain
integers; ``None`` plays the role of the null pointer.
"""

from __future__ import annotations

from typing import Optional

from osmem.heap import HEAP_SIZE, META_SIZE, PAGE_SIZE, Block, Heap, HeapError, Status, align


class Allocator:
    """Memory allocator working inside its own :class:`Heap`."""

    def __init__(self, page_size: int = PAGE_SIZE) -> None:
        self.page_size = page_size
        self.heap = Heap()

    # ----- helpers -------------------------------------------------------

    def block_at(self, address: int) -> Block:
        """Return the header of the block whose payload starts at ``address``."""
        block = self.heap.headers.get(address - META_SIZE)
        if block is None:
            raise HeapError(f"no block at {address:#x}")
        return block

    def read(self, address: int, size: int) -> bytes:
        """Read ``size`` bytes at ``address``."""
        return self.heap.read(address, size)

    def write(self, address: int, data: bytes) -> None:
        """Write ``data`` at ``address``."""
        self.heap.write(address, data)

    # ----- allocation ----------------------------------------------------

    def malloc(self, size: int) -> Optional[int]:
        """Allocate ``size`` bytes; ``None`` for a non-positive size."""
        if size <= 0:
            return None
        heap = self.heap
        wanted = align(size)

        if heap.base_heap is None:
            block = heap.alloc_heap(wanted, HEAP_SIZE)
            if wanted < HEAP_SIZE:
                block = heap.split_block(block, wanted)
            heap.base_heap = block
            return block.data_address

        if wanted < HEAP_SIZE:
            block = heap.find_free_block(wanted)
            if block is not None:
                return heap.split_block(block, wanted).data_address
        return heap.expand_heap(wanted, HEAP_SIZE).data_address

    def free(self, address: Optional[int]) -> None:
        """Release the block at ``address``; ``None`` is ignored."""
        if address is None:
            return
        heap = self.heap
        block = self.block_at(address)

        if block.status == Status.MAPPED:
            if block.prev is not None:
                block.prev.next = block.next
            if block.next is not None:
                block.next.prev = block.prev
            if block is heap.base_heap:
                if block.next is not None:
                    block.next.prev = None
                heap.base_heap = None
            heap.munmap(block.address, block.size + META_SIZE)
            return

        block.status = Status.FREE
        heap.coalesce(block)

    def calloc(self, nmemb: int, size: int) -> Optional[int]:
        """Allocate ``nmemb * size`` zeroed bytes; ``None`` when that is zero."""
        heap = self.heap
        threshold = self.page_size - META_SIZE
        full = nmemb * size
        if full <= 0:
            return None
        wanted = align(full)

        if heap.base_heap is None:
            block = heap.alloc_heap(wanted, threshold)
            if full < threshold:
                block = heap.split_block(block, wanted)
            heap.base_heap = block
            heap.zero(block.data_address, full)
            return block.data_address

        if align(size) < HEAP_SIZE:
            block = heap.find_free_block(wanted)
            if block is not None and align(size) < threshold:
                block = heap.split_block(block, wanted)
                heap.zero(block.data_address, full)
                return block.data_address
            if block is not None:
                block.status = Status.FREE

        block = heap.expand_heap(wanted, threshold)
        heap.zero(block.data_address, full)
        return block.data_address

    def realloc(self, address: Optional[int], size: int) -> Optional[int]:
        """Resize the block at ``address`` to ``size`` bytes.

        Returns the new address, or ``None`` when ``size`` is not positive
        (the block is freed) or the block is already free.
        """
        if address is None:
            return self.malloc(size)
        heap = self.heap
        block = self.block_at(address)

        if size <= 0:
            self.free(address)
            return None
        if block.status == Status.FREE:
            return None

        wanted = align(size)

        if block.status == Status.MAPPED:
            target = heap.find_free_block(wanted)
            if target is None:
                if heap.last_brk_block is None and wanted < HEAP_SIZE:
                    target = heap.expand_heap(HEAP_SIZE - META_SIZE, HEAP_SIZE)
                else:
                    target = heap.expand_heap(wanted, HEAP_SIZE)
                if wanted < HEAP_SIZE:
                    target = heap.split_block(target, wanted)
            else:
                target = heap.split_block(target, wanted)
            count = min(target.size, block.size)
            heap.write(target.data_address, heap.read(address, count))
            self.free(address)
            return target.data_address

        if wanted <= block.size:
            heap.split_block(block, wanted)
            return address

        if block is heap.last_brk_block:
            heap.sbrk(wanted - block.size)
            block.size = wanted
            return block.data_address

        block = heap.coalesce(block)
        if block.size >= wanted:
            return block.data_address

        new_address = self.malloc(size)
        if new_address is not None:
            heap.write(new_address, heap.read(address, block.size))
            self.free(address)
        return new_address