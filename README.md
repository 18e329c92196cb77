# toyos

The storage stack and a few text utilities of a small Unix-like teaching
kernel, as a plain Python library:

- `toyos.layout`: the on-disk format (`SuperBlock`, `DiskInode`, `DirEntry`,
  each with `pack()` and `unpack()`), the size limits, `iblock` and `bblock`
  for locating inodes and bitmap bits, and `Panic`, raised wherever the
  kernel would stop on a broken invariant.
- `toyos.memdisk`: `MemDisk`, a block device held in a `bytearray`.
- `toyos.bufcache`: `BufferCache` with `bread`, `bwrite`, `brelse` and a
  `block()` context manager that releases the buffer for you.
- `toyos.journal`: `Log`, a redo log that groups operations into transactions
  (`begin_op`/`end_op`, or the `transaction()` context manager) and installs
  committed work on `recover()`.
- `toyos.kalloc`: `PageAllocator`, a free-list page allocator with
  `freerange`, `kfree`, `kalloc` and `free_frame_count`.
- `toyos.fs`: `FileSystem` with block and inode allocation, inode reading and
  writing (`readi`, `writei`), directories (`dirlookup`, `dirlink`) and path
  lookup (`namei`, `nameiparent`). Device inodes are served by `Device`
  handlers passed in by major number.
- `toyos.file`: `FileTable`, `File` (`read`, `write`, `stat`, `dup`, `close`)
  and `Pipe`.
- `toyos.mkfs`: `build_image` creates a fresh file system image.
- `toyos.fmt`: `render` (user-level `%d %x %p %s %c %%`, upper-case hex) and
  `render_console` (kernel console, lower-case hex, no `%c`).
- `toyos.grep`: `match`, a matcher for `^ . * $`, and `grep` over a byte stream.
- `toyos.keyboard`: `Keyboard.translate` turns PC scan codes into characters.
- `toyos.console`: `Console` with line editing (backspace, `^U`, `^D`, `^P`)
  drawing on an 80×25 `Screen` and a serial byte buffer.

## Installing

    pip install .

Install the test extra with `pip install .[test]` and run `pytest`.

## Command line

Build an image containing some files. A leading `_` is removed from each name,
and names may not contain `/`:

    toyos-mkfs fs.img README _cat _ls

Print the lines that match a pattern:

    toyos-grep '^ab*c$' notes.txt

When no file is named, `toyos-grep` reads standard input.

## Library example

    from toyos.mkfs import build_image
    from toyos.memdisk import MemDisk
    from toyos.bufcache import BufferCache
    from toyos.fs import FileSystem
    from toyos.file import FileTable
    from toyos.fmt import render

    image = build_image({"hello": b"hello world\n"})
    fs = FileSystem(BufferCache(MemDisk(image)))

    with fs.log.transaction():
        ip = fs.namei("/hello")
        fs.ilock(ip)
        data = fs.readi(ip, 0, ip.size)
        fs.iunlockput(ip)
    assert data == b"hello world\n"

    reader, writer = FileTable().pipe()
    writer.write(b"hi")
    assert reader.read(10) == b"hi"

    assert render("%d %x", -1, 255) == "-1 FF"

Path lookups raise `FileNotFoundError` or `NotADirectoryError`; adding a name
that already exists raises `FileExistsError`.

## What it does not do

There are no processes, scheduler, system calls or program loading, and no
shell: the library offers the pieces a kernel's file layer is built from, and
the caller drives them. Disks are held in memory only; to keep an image, write
the bytes from `build_image` or `MemDisk.image` to a file yourself.