# osmem

`osmem` models a small general-purpose memory allocator that runs entirely
inside Python. It keeps a simulated address space with two parts:

- a program break that grows and shrinks with `sbrk`
- anonymous regions that `mmap` hands out and `munmap` removes

On top of that address space it offers `malloc`, `calloc`, `realloc` and
`free`:

- **Block metadata.** A 32-byte header sits in front of every block. It holds
  the size, the status (`FREE`, `ALLOC` or `MAPPED`) and links to the
  neighbouring blocks in one list.
- **Heap preallocation.** The first small request reserves a 128 KiB arena.
  The part the request does not use is split off as a free block.
- **Best fit.** Free blocks are reused by best fit. If no free block is large
  enough, the last free block can be grown in place by moving the break.
- **Splitting.** A block is split only when the remainder can hold a header
  and at least 8 bytes.
- **Coalescing.** Adjacent free blocks are merged on `free`, and also when
  `realloc` needs room. Mapped blocks in between are skipped.
- **Large requests.** A request whose aligned size reaches 128 KiB gets its
  own mapping when it comes through `malloc` or `realloc`. For `calloc` the
  threshold is the page size minus the header size.

Addresses are plain integers, and `None` stands for the null pointer. Memory
contents can be read and written. This lets you check that data survives a
`realloc` and that `calloc` hands out zeroed memory.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

```python
from osmem.allocator import Allocator

alloc = Allocator(page_size=4096)   # 4096 is also the default

p = alloc.malloc(100)
alloc.write(p, b"hello")
p = alloc.realloc(p, 2000)          # contents are preserved
assert alloc.read(p, 5) == b"hello"

q = alloc.calloc(10, 100)           # zero-filled
assert alloc.read(q, 1000) == bytes(1000)

block = alloc.block_at(q)           # header of the block behind q
print(block.size, block.status)

alloc.free(p)
alloc.free(q)
```

Edge cases:

- `malloc` with a size of zero or less returns `None`.
- `calloc` whose total size is zero returns `None`.
- `free(None)` does nothing.
- `realloc(None, n)` behaves like `malloc(n)`.
- `realloc(address, 0)` frees the block and returns `None`.
- `realloc` on a block that is already free returns `None`.
- `block_at`, and with it `free` and `realloc`, raise `osmem.heap.HeapError`
  for an address that is not the start of a block's payload.
- Reading or writing outside the mapped memory also raises `HeapError`.

### The heap underneath

`Allocator.heap` is an `osmem.heap.Heap`. It holds the simulated address
space and the block list.

Address space:

- `sbrk(increment)` moves the break and returns the old break.
- `mmap(length)` maps zeroed memory, rounded up to whole pages.
- `munmap(address, length)` removes a mapping.
- `read`, `write` and `zero` work on memory contents.

Block list:

- `alloc_heap` creates the first block.
- `expand_heap` appends a block to the list.
- `find_free_block` picks a free block by best fit.
- `split_block` splits a block.
- `coalesce` merges a block with its free neighbours.
- `blocks()` iterates over the list from its head.

Each block is an `osmem.heap.Block`, with:

- `address`, `size` and `status`
- `prev` and `next`
- `data_address` and `end`

`osmem.heap.align` rounds a size up to the 8-byte alignment. A failed heap
operation raises `osmem.heap.HeapError`.

### Formatting

`osmem.printf` provides a compact printf-style formatter. It supports:

- the flags `0 - + space #`
- width and precision, either of which may be `*`
- the length modifiers `hh h l ll j z t`
- the conversions `d i u x X o b f F e E g G c s p %`

Integer arguments are truncated to the width of the C type that the length
modifier names: 32 bits by default and 64 bits for `l`, `ll`, `j`, `z` and
`t`.

```python
from osmem.printf import format_string, snprintf

format_string("%-8s|%05d|%#x|%.3f", "block", 42, 255, 3.14159)
# 'block   |00042|0xff|3.142'

text, length = snprintf(6, "%d bytes", 4096)
# ('4096 ', 10): at most count - 1 characters, plus the full length
```

The other entry points:

- `sprintf` returns the formatted text, just as `format_string` does.
- `printf` writes the text to standard output and returns its length.
- `fctprintf(out, fmt, *args)` passes each character to the callable `out`
  and returns the length.

The number conversions live in `osmem.numfmt`:

- `format_integer`
- `format_fixed`
- `format_exponential`
- the `Flags` options

Fixed-point output switches to exponential notation for values beyond
±1e9.

## What it does not do

`osmem` is a model. It does not manage the memory of the Python process, and
it does not replace the memory allocator that any program uses. It has no
command-line tool; you use it as a library.