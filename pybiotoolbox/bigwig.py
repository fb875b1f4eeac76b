"""Indexed signal backend: bigWig files read through pyBigWig."""

import os
import re

import numpy as np

_REMOTE = re.compile(r"^(?:https?|ftp)://", re.IGNORECASE)


def _require_pybigwig():
    try:
        import pyBigWig
    except ImportError as exc:
        raise ImportError(
            "BigWig support requires pyBigWig. Install with: pip install pyBigWig"
        ) from exc
    return pyBigWig


class BigWigFile:
    """
    An opened bigWig file.

    Queries use 1-based inclusive coordinates and return intervals at the
    file's native resolution; positions are the 1-based interval starts.
    Remote files (``http://``, ``https://``, ``ftp://``) are opened by
    pyBigWig directly.
    """

    def __init__(self, path):
        pyBigWig = _require_pybigwig()
        self.path = str(path)
        if not _REMOTE.match(self.path) and not os.path.exists(self.path):
            raise FileNotFoundError(self.path)
        self._bw = pyBigWig.open(self.path)
        if self._bw is None:
            raise ValueError(f"Failed to open BigWig file '{self.path}'")
        if not self._bw.isBigWig():
            self._bw.close()
            raise ValueError(f"'{self.path}' is not a BigWig file")
        self.chroms = dict(self._bw.chroms() or {})

    def __repr__(self):
        return f"BigWigFile({self.path!r})"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        if self._bw is not None:
            self._bw.close()
            self._bw = None

    def intervals(self, chrom, start, end):
        """
        Return the intervals overlapping ``[start, end]``.

        Returns
        -------
        tuple of (ndarray, ndarray, ndarray)
            1-based starts, inclusive ends and values. Empty when the
            chromosome is absent from the file.
        """
        size = self.chroms.get(chrom)
        if size is None or end < 1 or start > size:
            return (np.empty(0, dtype=np.int64), np.empty(0, dtype=np.int64),
                    np.empty(0, dtype=np.float64))
        # pyBigWig takes 0-based half-open coordinates
        qstart = max(start - 1, 0)
        qend = min(end, size)
        found = self._bw.intervals(chrom, qstart, qend) or ()
        starts = np.fromiter((s + 1 for s, _, _ in found), dtype=np.int64, count=len(found))
        ends = np.fromiter((e for _, e, _ in found), dtype=np.int64, count=len(found))
        vals = np.fromiter((v for _, _, v in found), dtype=np.float64, count=len(found))
        return starts, ends, vals


def write_bigwig(path, chrom_sizes, entries):
    """
    Write a bigWig file from ``(chrom, start, end, value)`` entries.

    Coordinates are 1-based inclusive. Entries are written sorted by
    chromosome order in *chrom_sizes* and start.
    """
    pyBigWig = _require_pybigwig()
    order = {c: i for i, c in enumerate(chrom_sizes)}
    rows = sorted(entries, key=lambda e: (order[e[0]], e[1]))
    bw = pyBigWig.open(str(path), "w")
    try:
        bw.addHeader(list(chrom_sizes.items()))
        if rows:
            bw.addEntries(
                [r[0] for r in rows],
                [int(r[1]) - 1 for r in rows],
                ends=[int(r[2]) for r in rows],
                values=[float(r[3]) for r in rows],
            )
    finally:
        bw.close()
    return str(path)
