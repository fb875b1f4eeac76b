"""Feature database: a pandas-backed store of GFF3 features."""

from __future__ import annotations

import gzip
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import unquote

import numpy as np
import pandas as pd

from ._shared import Strand, parse_strand

_GFF_COLUMNS = ['seq_id', 'source', 'type', 'start', 'end', 'score', 'strand', 'phase', 'attributes']
_DB_COLUMNS = _GFF_COLUMNS[:-1] + ['id', 'name', 'parent', 'attributes']
_REFERENCE_TYPES = {'chromosome', 'contig', 'scaffold', 'region', 'sequence'}


@dataclass(frozen=True)
class Feature:
    """A named genomic feature resolved from the database (1-based, inclusive)."""

    name: str
    type: str
    chrom: str
    start: int
    end: int
    strand: Strand = Strand.UNSTRANDED
    id: str | None = None
    source: str | None = None
    score: float | None = None
    attributes: dict[str, list[str]] = field(default_factory=dict, compare=False)

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def primary_tag(self) -> str:
        return self.type


def _parse_attributes(text):
    attrs: dict[str, list[str]] = {}
    if not isinstance(text, str) or text in ('', '.'):
        return attrs
    for item in text.strip().strip(';').split(';'):
        item = item.strip()
        if not item:
            continue
        if '=' in item:
            key, value = item.split('=', 1)
        else:
            # GTF style: key "value"
            key, _, value = item.partition(' ')
            value = value.strip().strip('"')
        attrs[unquote(key.strip())] = [unquote(v) for v in value.split(',')]
    return attrs


def _first(attrs, key):
    values = attrs.get(key)
    return values[0] if values else None


def _open_text(path):
    path = Path(path)
    if path.suffix == '.gz':
        return gzip.open(path, 'rt')
    return path.open()


def _read_sequence_regions(path):
    sizes = {}
    with _open_text(path) as fh:
        for line in fh:
            if not line.startswith('#'):
                break
            if line.startswith('##sequence-region'):
                parts = line.split()
                if len(parts) >= 4:
                    sizes[parts[1]] = int(parts[3])
    return sizes


def _type_matcher(types):
    """Split ``type`` / ``type:source`` names into (type, source) pairs."""
    pairs = []
    for t in types:
        if ':' in t:
            prim, src = t.split(':', 1)
            pairs.append((prim.lower(), src.lower()))
        else:
            pairs.append((t.lower(), None))
    return pairs


class FeatureDB:
    """
    An in-memory feature database.

    Features are held in a DataFrame with the columns ``seq_id, source,
    type, start, end, score, strand, phase, id, name, parent,
    attributes``. Coordinates are 1-based and inclusive. The ``attributes``
    column holds a ``{tag: [values]}`` dict per feature.

    Parameters
    ----------
    df : DataFrame
        Feature table. Missing optional columns are filled in.
    name : str, optional
        Name used in messages.
    chrom_sizes : dict, optional
        Chromosome lengths. Derived from the features when omitted.
    """

    def __init__(self, df, name=None, chrom_sizes=None):
        df = df.copy()
        for col in ('seq_id', 'type', 'start', 'end'):
            if col not in df.columns:
                raise ValueError(f"Feature table must contain '{col}' column")
        if 'attributes' not in df.columns:
            df['attributes'] = [{} for _ in range(len(df))]
        for col in ('source', 'phase', 'id', 'name', 'parent'):
            if col not in df.columns:
                df[col] = None
            df[col] = df[col].astype(object).where(df[col].notna(), None)
        df['attributes'] = [a if isinstance(a, dict) else {} for a in df['attributes']]
        if 'score' not in df.columns:
            df['score'] = np.nan
        if 'strand' not in df.columns:
            df['strand'] = 0

        df['seq_id'] = df['seq_id'].astype(str)
        df['start'] = df['start'].astype(np.int64)
        df['end'] = df['end'].astype(np.int64)
        df['score'] = pd.to_numeric(df['score'], errors='coerce')
        df['strand'] = [int(parse_strand(s)) for s in df['strand']]
        df['_type'] = df['type'].astype(str).str.lower()
        df['_source'] = df['source'].fillna('').astype(str).str.lower()

        self.name = name
        self._df = df[_DB_COLUMNS + ['_type', '_source']].reset_index(drop=True)
        self._by_chrom = {chrom: sub for chrom, sub in self._df.groupby('seq_id', sort=False)}
        self._chrom_sizes = dict(chrom_sizes or {})

    def __repr__(self):
        return f"FeatureDB(name={self.name!r}, features={len(self._df)})"

    def __len__(self):
        return len(self._df)

    @classmethod
    def from_gff(cls, path, name=None):
        """
        Load a GFF3 (or GTF) file into a feature database.

        ``##sequence-region`` pragmas provide chromosome lengths. Names are
        taken from the ``Name`` attribute, falling back to ``ID`` (or
        ``gene_id`` / ``transcript_id`` for GTF).

        Raises
        ------
        FileNotFoundError
            If *path* does not exist.
        ValueError
            If the file holds no features.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(path)

        raw = pd.read_csv(
            path, sep='\t', comment='#', header=None, names=_GFF_COLUMNS,
            dtype={'seq_id': str, 'source': str, 'type': str, 'attributes': str},
            na_values={'score': ['.'], 'phase': ['.']}, keep_default_na=False,
            compression='infer',
        )
        if raw.empty:
            raise ValueError(f"GFF file '{path}' contains no features")

        attrs = [_parse_attributes(a) for a in raw['attributes']]
        raw['attributes'] = attrs
        raw['id'] = [_first(a, 'ID') or _first(a, 'transcript_id') or _first(a, 'gene_id') for a in attrs]
        raw['name'] = [
            _first(a, 'Name') or _first(a, 'ID') or _first(a, 'transcript_id') or _first(a, 'gene_id')
            for a in attrs
        ]
        raw['parent'] = [_first(a, 'Parent') for a in attrs]
        sizes = _read_sequence_regions(path)
        return cls(raw, name=name or path.stem, chrom_sizes=sizes)

    @property
    def table(self):
        """The feature table (without internal columns)."""
        return self._df[_DB_COLUMNS]

    def _row_to_feature(self, row):
        score = row['score']
        return Feature(
            name=row['name'] if row['name'] is not None else (row['id'] or ''),
            type=row['type'],
            chrom=row['seq_id'],
            start=int(row['start']),
            end=int(row['end']),
            strand=Strand(int(row['strand'])),
            id=row['id'],
            source=row['source'] or None,
            score=None if pd.isna(score) else float(score),
            attributes=row['attributes'] or {},
        )

    def _type_mask(self, df, types):
        if not types:
            return np.ones(len(df), dtype=bool)
        mask = np.zeros(len(df), dtype=bool)
        for prim, src in _type_matcher(types):
            m = (df['_type'] == prim).to_numpy()
            if src is not None:
                m = m & (df['_source'] == src).to_numpy()
            mask = mask | m
        return mask

    def features(self, name=None, type=None):
        """
        Return the features matching a name and/or type.

        Names are matched against the ``Name``, ``ID`` and ``Alias``
        attributes. Types may be given as ``type`` or ``type:source``, or as
        a list of these.

        Returns
        -------
        list of Feature
            In database order.
        """
        df = self._df
        types = [type] if isinstance(type, str) else list(type or [])
        mask = self._type_mask(df, types)
        if name is not None:
            name_mask = (df['name'] == name).to_numpy() | (df['id'] == name).to_numpy()
            if not name_mask.any():
                name_mask = np.array([name in (a.get('Alias') or []) for a in df['attributes']], dtype=bool)
            mask = mask & name_mask
        return [self._row_to_feature(row) for _, row in df[mask].iterrows()]

    def overlapping(self, chrom, start, end, types=None):
        """
        Return the table rows of features overlapping a closed interval.

        Returns
        -------
        DataFrame
            Matching rows sorted by start.
        """
        sub = self._by_chrom.get(str(chrom))
        if sub is None:
            return self._df.iloc[0:0]
        mask = ((sub['start'] <= end) & (sub['end'] >= start)).to_numpy()
        mask = mask & self._type_mask(sub, types or [])
        return sub[mask].sort_values('start', kind='mergesort')

    def subfeatures(self, feature):
        """Return the direct children of a feature (``Parent`` = its ID)."""
        if feature.id is None:
            return []
        df = self._df
        sub = df[(df['parent'] == feature.id).to_numpy()]
        return [self._row_to_feature(row) for _, row in sub.iterrows()]

    def types(self):
        """Return the sorted ``type:source`` names present in the database."""
        pairs = self._df[['type', 'source']].drop_duplicates()
        names = {f"{t}:{s}" if s else str(t) for t, s in zip(pairs['type'], pairs['source'])}
        return sorted(names)

    def chromosomes(self):
        """
        Return chromosome lengths as ``{chrom: length}``.

        Lengths come from ``##sequence-region`` pragmas or reference
        features (``chromosome``, ``contig``, ...), falling back to the end
        of the last feature on each chromosome.
        """
        sizes = dict(self._chrom_sizes)
        refs = self._df[self._df['_type'].isin(_REFERENCE_TYPES)]
        for chrom, end in zip(refs['seq_id'], refs['end']):
            sizes.setdefault(chrom, int(end))
        for chrom, sub in self._by_chrom.items():
            sizes.setdefault(chrom, int(sub['end'].max()))
        return sizes

    def chrom_length(self, chrom):
        return self.chromosomes().get(str(chrom))


def gdb_open(db: Any = None) -> FeatureDB:
    """
    Open a feature database.

    Parameters
    ----------
    db : FeatureDB, str or Path, optional
        An opened database (returned as is), a GFF3 file path, or the name of
        a database in the configuration file. Defaults to the configured
        ``default_db``.

    Returns
    -------
    FeatureDB

    Raises
    ------
    KeyError
        If a database name is not configured.
    ValueError
        If the configured adaptor is not supported.

    Examples
    --------
    >>> import pybiotoolbox as pb
    >>> db = pb.gdb_open("annotation.gff3")  # doctest: +SKIP
    >>> db = pb.gdb_open("cerevisiae")  # doctest: +SKIP
    """
    from .config import gdb_params

    if isinstance(db, FeatureDB):
        return db
    if db is not None and re.search(r'\.(gff3?|gtf)(\.gz)?$', str(db), re.IGNORECASE):
        return FeatureDB.from_gff(db)

    params = gdb_params(db)
    adaptor = str(params.get('adaptor', 'gff3')).lower()
    if adaptor not in ('gff3', 'gff', 'gtf'):
        raise ValueError(f"Unsupported database adaptor '{adaptor}' for '{params['name']}'")
    path = params.get('path') or params.get('file')
    if not path:
        raise ValueError(f"Database '{params['name']}' has no path configured")
    return FeatureDB.from_gff(path, name=params['name'])
