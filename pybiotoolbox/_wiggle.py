"""
Pure Python reader/writer for scaled binary wiggle files (.wib).

One file holds the signal of one chromosome sampled at a fixed step.
Values are quantized to one byte between the file's min and max.

Binary format (little-endian):
  Header (128 bytes): [8s magic] [int64 start] [int64 end] [int32 step] [int32 span]
                      [double min] [double max] [64s seq_id] [16 pad]
  Data: uint8 per step, position = start + i * step
        0 = no value; 1..255 scale linearly onto [min, max]

Coordinates are 1-based and inclusive; ``end`` is the last base covered.
"""

import math
import mmap
import struct

import numpy as np

MAGIC = b"PBTWIG1\x00"
_HEADER_FMT = "<8sqqiidd64s"
HEADER_SIZE = 128
_LEVELS = 254


def _pack_header(start, end, step, span, min_val, max_val, seq_id):
    raw = struct.pack(
        _HEADER_FMT, MAGIC, start, end, step, span, min_val, max_val,
        seq_id.encode("utf-8")[:64],
    )
    return raw + b"\x00" * (HEADER_SIZE - len(raw))


def _quantize(values, min_val, max_val):
    """Map floats onto bytes 1..255; NaN maps to 0."""
    out = np.zeros(len(values), dtype=np.uint8)
    ok = ~np.isnan(values)
    if max_val > min_val:
        scaled = np.rint((values[ok] - min_val) / (max_val - min_val) * _LEVELS)
        out[ok] = 1 + np.clip(scaled, 0, _LEVELS).astype(np.uint8)
    else:
        out[ok] = 1
    return out


def write_wig(path, seq_id, start, values, step=1, span=None, min_val=None, max_val=None):
    """
    Write a scaled binary wiggle file.

    Parameters
    ----------
    path : str or Path
        Output file.
    seq_id : str
        Chromosome name stored in the header.
    start : int
        Position (1-based) of the first value.
    values : array-like of float
        One value per step; NaN marks positions without data.
    step : int, default 1
        Distance between consecutive values.
    span : int, optional
        Bases covered by each value. Defaults to *step*.
    min_val, max_val : float, optional
        Scaling bounds. Default to the data range.

    Returns
    -------
    str
        The written path.
    """
    vals = np.asarray(values, dtype=np.float64)
    if vals.size == 0:
        raise ValueError("Cannot write an empty wiggle file")
    if step < 1:
        raise ValueError(f"Invalid step {step}: must be >= 1")
    finite = vals[~np.isnan(vals)]
    if min_val is None:
        min_val = float(finite.min()) if finite.size else 0.0
    if max_val is None:
        max_val = float(finite.max()) if finite.size else 0.0
    span = step if span is None else span
    end = start + vals.size * step - 1

    with open(path, "wb") as f:
        f.write(_pack_header(start, end, step, span, min_val, max_val, seq_id))
        f.write(_quantize(vals, min_val, max_val).tobytes())
    return str(path)


class ScaledWiggle:
    """
    An opened scaled binary wiggle file.

    The file is memory-mapped; values are read by offset from the
    requested position at the file's native step.
    """

    def __init__(self, path):
        self.path = str(path)
        self._fh = open(self.path, "rb")
        try:
            self._data = mmap.mmap(self._fh.fileno(), 0, access=mmap.ACCESS_READ)
        except ValueError:
            self._fh.close()
            raise ValueError(f"Wiggle file '{self.path}' is empty") from None
        try:
            if len(self._data) < HEADER_SIZE:
                raise ValueError(f"Wiggle file '{self.path}' is truncated")
            (magic, self.start, self.end, self.step, self.span,
             self.min, self.max, seq_id) = struct.unpack_from(_HEADER_FMT, self._data, 0)
            if magic != MAGIC:
                raise ValueError(f"'{self.path}' is not a binary wiggle file")
        except Exception:
            self.close()
            raise
        self.seq_id = seq_id.rstrip(b"\x00").decode("utf-8")
        self.num_values = len(self._data) - HEADER_SIZE

    def __repr__(self):
        return f"ScaledWiggle({self.path!r}, {self.seq_id}:{self.start}-{self.end}, step={self.step})"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        if getattr(self, "_data", None) is not None:
            self._data.close()
            self._data = None
        if not self._fh.closed:
            self._fh.close()

    def values(self, chrom, start, end):
        """
        Return the defined values between two positions of a chromosome.

        The query is clipped to the file bounds; a query on another
        chromosome or entirely outside the bounds returns empty arrays.

        Returns
        -------
        tuple of (ndarray, ndarray)
            Positions (int64) and values (float64).
        """
        empty = (np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64))
        if str(chrom) != self.seq_id:
            return empty
        if start > self.end or end < self.start:
            return empty
        start = max(start, self.start)
        end = min(end, self.end)

        first = math.ceil((start - self.start) / self.step)
        last = min((end - self.start) // self.step, self.num_values - 1)
        if last < first:
            return empty

        raw = np.frombuffer(self._data, dtype=np.uint8, count=last - first + 1,
                            offset=HEADER_SIZE + first).copy()
        keep = raw > 0
        positions = self.start + (np.arange(first, last + 1, dtype=np.int64) * self.step)
        scale = (self.max - self.min) / _LEVELS
        vals = self.min + (raw[keep].astype(np.float64) - 1) * scale
        return positions[keep], vals
