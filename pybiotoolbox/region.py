"""Strand-aware resolution of features and adjustments into query segments."""

from __future__ import annotations

import dataclasses
import math
import warnings
from dataclasses import dataclass

from ._shared import CONFIG, Strand, parse_strand
from .config import features_to_types

_ANCHORS = {
    '5': 5, "5'": 5, 'five': 5, 'start': 5,
    '3': 3, "3'": 3, 'three': 3, 'end': 3,
    '1': 1, 'm': 1, 'mid': 1, 'middle': 1, 'midpoint': 1,
}


@dataclass(frozen=True)
class Segment:
    """A concrete interval for one query (1-based, inclusive)."""

    chrom: str
    start: int
    end: int
    strand: Strand = Strand.UNSTRANDED

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Segment start {self.start} is greater than end {self.end}")
        object.__setattr__(self, 'strand', parse_strand(self.strand))

    def __str__(self):
        sign = {1: '+', -1: '-', 0: '.'}[int(self.strand)]
        return f"{self.chrom}:{self.start}-{self.end}({sign})"

    @property
    def length(self) -> int:
        return self.end - self.start + 1


def _parse_anchor(position):
    key = str(position).strip().lower()
    if key not in _ANCHORS:
        raise ValueError(f"Invalid relative position {position!r}: must be 5, 3 or 1 (midpoint)")
    return _ANCHORS[key]


def _round_half_away(x):
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


@dataclass(frozen=True)
class Adjustment:
    """
    Declarative change of a feature's extent.

    Exactly one mode may be used: ``extend``; ``start`` + ``stop``
    (absolute offsets); ``fstart`` + ``fstop`` (fractions of the feature
    length); or ``subfeature``. Offsets are measured from the anchor chosen
    by ``position`` (5, 3 or 1 for the midpoint) in the direction of the
    feature strand.
    """

    extend: int | None = None
    start: int | None = None
    stop: int | None = None
    fstart: float | None = None
    fstop: float | None = None
    position: int = 5
    limit: int | None = None
    subfeature: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'position', _parse_anchor(self.position))
        if (self.start is None) != (self.stop is None):
            raise ValueError("Both start and stop offsets must be given")
        if (self.fstart is None) != (self.fstop is None):
            raise ValueError("Both fstart and fstop fractions must be given")
        modes = [self.extend is not None, self.start is not None,
                 self.fstart is not None, bool(self.subfeature)]
        if sum(modes) > 1:
            raise ValueError("extend, start/stop, fstart/fstop and subfeature are mutually exclusive")

    @property
    def mode(self) -> str:
        if self.extend is not None:
            return 'extend'
        if self.start is not None:
            return 'offset'
        if self.fstart is not None:
            return 'fraction'
        if self.subfeature:
            return 'subfeature'
        return 'whole'


class RegionResolver:
    """
    Turn database features plus an ``Adjustment`` into ``Segment`` objects.

    Parameters
    ----------
    db : FeatureDB
        Database used to look up features and chromosome lengths.
    adjustment : Adjustment, optional
        Defaults to the whole feature.
    """

    def __init__(self, db, adjustment=None):
        self.db = db
        self.adjustment = adjustment or Adjustment()
        self._chrom_sizes = None

    def lookup(self, name, type, where=None):
        """
        Find one feature by name and type.

        Warns and returns the first match when several features match, and
        warns and returns ``None`` when none does. *where* is added to the
        warning text (e.g. the table row).
        """
        if type is None or type == '':
            raise ValueError(f"No feature type given for '{name}'")
        suffix = f" ({where})" if where else ""
        found = self.db.features(name=name, type=features_to_types(type))
        if not found:
            warnings.warn(f"Feature '{type} => {name}' not found in the database{suffix}", stacklevel=2)
            return None
        if len(found) > 1:
            warnings.warn(
                f"Found more than one feature of '{type} => {name}' in the database{suffix}; "
                "using the first feature only",
                stacklevel=2,
            )
        return found[0]

    def anchor(self, feature):
        """Return the anchor coordinate that relative positions are measured from."""
        adj = self.adjustment
        if adj.mode in ('offset', 'fraction'):
            return self._anchor_at(feature, adj.position)
        return self._anchor_at(feature, 5)

    @staticmethod
    def _anchor_at(feature, position):
        if position == 1:
            return feature.start + feature.length // 2
        reverse = feature.strand == Strand.REVERSE
        if position == 3:
            return feature.start if reverse else feature.end
        return feature.end if reverse else feature.start

    def _make_segment(self, chrom, start, end, strand):
        if start > end:
            start, end = end, start
        if end < 1:
            return None
        start = max(start, 1)
        if self._chrom_sizes is None:
            self._chrom_sizes = self.db.chromosomes() if self.db is not None else {}
        size = self._chrom_sizes.get(chrom)
        if size is not None:
            if start > size:
                return None
            end = min(end, size)
        return Segment(chrom, start, end, strand)

    def _offset_segment(self, feature, lo, hi):
        anchor = self._anchor_at(feature, self.adjustment.position)
        if feature.strand == Strand.REVERSE:
            return self._make_segment(feature.chrom, anchor - hi, anchor - lo, feature.strand)
        return self._make_segment(feature.chrom, anchor + lo, anchor + hi, feature.strand)

    def resolve(self, feature, strand=None):
        """
        Compute the segment for a feature.

        Parameters
        ----------
        feature : Feature
            A resolved feature.
        strand : optional
            Strand overriding the feature's own.

        Returns
        -------
        Segment or None
            ``None`` when the adjusted interval lies outside the chromosome.
        """
        if strand is not None:
            feature = dataclasses.replace(feature, strand=parse_strand(strand))
        adj = self.adjustment
        mode = adj.mode

        if mode == 'extend':
            return self._make_segment(
                feature.chrom, feature.start - adj.extend, feature.end + adj.extend, feature.strand)
        if mode == 'offset':
            return self._offset_segment(feature, int(adj.start), int(adj.stop))
        if mode == 'fraction':
            limit = adj.limit if adj.limit is not None else CONFIG['fractional_limit']
            if feature.length >= limit:
                lo = _round_half_away(feature.length * adj.fstart)
                hi = _round_half_away(feature.length * adj.fstop)
                return self._offset_segment(feature, lo, hi)
        return self._make_segment(feature.chrom, feature.start, feature.end, feature.strand)

    def subfeature_segments(self, feature, strand=None):
        """
        Return one segment per exon of a feature.

        Exons are searched among the children and, through RNA children,
        grandchildren. Without exons the CDS and UTR parts are used, and
        without any of those the whole feature.
        """
        if strand is not None:
            feature = dataclasses.replace(feature, strand=parse_strand(strand))
        exons, cdss = [], []

        def classify(sub):
            tag = sub.primary_tag.lower()
            if 'exon' in tag:
                exons.append(sub)
            elif 'utr' in tag or 'untranslated' in tag or 'cds' in tag:
                cdss.append(sub)
            else:
                return False
            return True

        for sub in self.db.subfeatures(feature):
            if not classify(sub) and 'rna' in sub.primary_tag.lower():
                for grandchild in self.db.subfeatures(sub):
                    classify(grandchild)

        parts = exons or cdss or [feature]
        segments = []
        for part in parts:
            seg = self._make_segment(part.chrom, part.start, part.end, feature.strand)
            if seg is not None:
                segments.append(seg)
        return segments
