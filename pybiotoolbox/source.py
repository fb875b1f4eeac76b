"""Uniform read access to inline-score, scaled-signal and indexed-signal datasets."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Union

import numpy as np

from ._shared import CONFIG, Strand, ValueType, parse_value_type, split_datasets
from ._wiggle import ScaledWiggle
from .bigwig import _REMOTE, BigWigFile

_FILE_PREFIX = re.compile(r'^(?:file:|https?://|ftp://)', re.IGNORECASE)


@dataclass(frozen=True)
class InlineScore:
    score: float | None


@dataclass(frozen=True)
class ScaledSignalRef:
    path: str


@dataclass(frozen=True)
class IndexedSignalRef:
    path: str


Payload = Union[InlineScore, ScaledSignalRef, IndexedSignalRef]


@dataclass(frozen=True)
class Datapoint:
    """One raw record overlapping a query segment."""

    chrom: str
    start: int
    end: int
    strand: Strand
    payload: Payload
    dataset: str | None = None

    @property
    def length(self) -> int:
        return self.end - self.start + 1


def _payload_for(attributes, score):
    """Pick the backend of a database record from its attributes."""
    for tag, kind in (('wigfile', ScaledSignalRef), ('bigwigfile', IndexedSignalRef)):
        values = attributes.get(tag)
        if values:
            return kind(values[0])
    return InlineScore(None if score is None or np.isnan(score) else float(score))


def _file_payload(dataset):
    path = dataset[5:] if dataset.lower().startswith('file:') else dataset
    lower = path.lower()
    if lower.endswith(('.bw', '.bigwig')):
        return IndexedSignalRef(path)
    if lower.endswith('.wib'):
        if _REMOTE.match(path):
            raise ValueError(f"Binary wiggle files must be local: '{dataset}'")
        return ScaledSignalRef(path)
    raise ValueError(f"Unsupported data file '{dataset}': expected .bw, .bigwig or .wib")


def is_file_dataset(dataset):
    return bool(_FILE_PREFIX.match(dataset))


def dataset_column_name(dataset):
    """Column name for a dataset: database names as is, files by basename."""
    parts = split_datasets(dataset)
    if is_file_dataset(parts[0]):
        return '&'.join(os.path.basename(p) for p in parts)
    return '&'.join(parts)


class HandleCache:
    """
    Opened data files keyed by path.

    Handles are opened on first use and kept until ``clear()``. A cache
    must not be shared between threads or processes.
    """

    def __init__(self):
        self._handles = {}

    def __len__(self):
        return len(self._handles)

    def __contains__(self, path):
        return path in self._handles

    def get(self, path, opener):
        handle = self._handles.get(path)
        if handle is None:
            if not _FILE_PREFIX.match(path) and not os.path.exists(path):
                raise FileNotFoundError(f"Data file '{path}' does not exist")
            handle = opener(path)
            self._handles[path] = handle
        return handle

    def clear(self):
        handles, self._handles = self._handles, {}
        for handle in handles.values():
            handle.close()


class DatasetSource:
    """
    Fetch dataset values from a feature database and its data files.

    Parameters
    ----------
    db : FeatureDB, optional
        Database holding dataset features. Only file datasets can be read
        without one.
    cache : HandleCache, optional
        Cache of opened files. A new one is created when omitted.

    Examples
    --------
    >>> import pybiotoolbox as pb
    >>> db = pb.gdb_open("annotation.gff3")  # doctest: +SKIP
    >>> with pb.DatasetSource(db) as source:  # doctest: +SKIP
    ...     points = source.datapoints(pb.Segment("chrI", 1000, 2000), "scores")
    """

    def __init__(self, db=None, cache=None):
        self.db = db
        self.cache = cache if cache is not None else HandleCache()

    def __repr__(self):
        return f"DatasetSource(db={self.db!r}, open_files={len(self.cache)})"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        """Close every cached file handle."""
        self.cache.clear()

    def datapoints(self, segment, dataset):
        """
        Return all datapoints overlapping a segment.

        Parameters
        ----------
        segment : Segment
            Query interval.
        dataset : str or list of str
            Dataset name(s); ``&``/``,`` joined names are pooled.

        Returns
        -------
        list of Datapoint

        Raises
        ------
        ValueError
            If a database dataset is requested without a database.
        """
        names = split_datasets(dataset)
        points = []
        db_types = []
        for name in names:
            if is_file_dataset(name):
                points.append(Datapoint(
                    segment.chrom, segment.start, segment.end, Strand.UNSTRANDED,
                    _file_payload(name), dataset=name,
                ))
            else:
                db_types.append(name)

        if db_types:
            if self.db is None:
                raise ValueError(f"No database given for dataset '{'&'.join(db_types)}'")
            rows = self.db.overlapping(segment.chrom, segment.start, segment.end, db_types)
            for row in rows.itertuples(index=False):
                points.append(Datapoint(
                    row.seq_id, int(row.start), int(row.end), Strand(int(row.strand)),
                    _payload_for(row.attributes, row.score), dataset=row.type,
                ))
        if CONFIG['debug']:
            print(f"{segment}: {len(points)} datapoints from {names}")
        return points

    def values(self, datapoint, segment, value_type=ValueType.SCORE):
        """
        Expand a datapoint into ``(positions, values)`` within a segment.

        Inline records contribute one value at their start (single base) or
        midpoint. Signal files contribute every defined value in the
        segment, clipped to the file bounds.
        """
        value_type = parse_value_type(value_type)
        payload = datapoint.payload

        if isinstance(payload, InlineScore):
            if datapoint.start == datapoint.end:
                pos = datapoint.start
            else:
                pos = (datapoint.start + datapoint.end) // 2
            if value_type is ValueType.SCORE:
                if payload.score is None:
                    return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64)
                val = payload.score
            elif value_type is ValueType.COUNT:
                val = 1.0
            else:
                val = float(datapoint.length)
            return np.array([pos], dtype=np.int64), np.array([val], dtype=np.float64)

        if isinstance(payload, ScaledSignalRef):
            wig = self.cache.get(payload.path, ScaledWiggle)
            positions, vals = wig.values(segment.chrom, segment.start, segment.end)
            span = wig.span
        elif isinstance(payload, IndexedSignalRef):
            bw = self.cache.get(payload.path, BigWigFile)
            positions, ends, vals = bw.intervals(segment.chrom, segment.start, segment.end)
            span = ends - positions + 1
        else:
            raise TypeError(f"Unknown datapoint payload {payload!r}")

        if value_type is ValueType.COUNT:
            vals = np.ones(len(positions), dtype=np.float64)
        elif value_type is ValueType.LENGTH:
            vals = np.broadcast_to(np.asarray(span, dtype=np.float64), positions.shape).copy()
        return positions, vals
