"""Collect dataset scores for feature tables, genomic windows and single regions."""

import dataclasses
import warnings
from collections import defaultdict

import numpy as np

from ._shared import (
    NULL,
    Strand,
    ValueType,
    _find_column,
    _null_to_nan,
    _progress_context,
    infer_log2,
    parse_method,
    parse_strand,
    parse_strand_mode,
    parse_value_type,
    split_datasets,
)
from .db import gdb_open
from .region import Adjustment, RegionResolver, Segment
from .scoring import aggregate, combine_scores, strand_filter
from .source import DatasetSource, dataset_column_name, is_file_dataset


def _gather(source, segment, dataset, strand_mode, value_type):
    """Fetch, strand-filter and expand datapoints into (positions, values)."""
    positions, values = [], []
    for point in source.datapoints(segment, dataset):
        if not strand_filter(point.strand, segment.strand, strand_mode):
            continue
        pos, vals = source.values(point, segment, value_type)
        positions.append(pos)
        values.append(vals)
    if not positions:
        return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64)
    return np.concatenate(positions), np.concatenate(values)


def _segment_score(source, segment, dataset, method, strand_mode, value_type, log2):
    _, values = _gather(source, segment, dataset, strand_mode, value_type)
    return aggregate(values, method, log2=log2)


def _check_datasets(dataset):
    datasets = [dataset] if isinstance(dataset, str) else list(dataset or [])
    if not datasets:
        raise ValueError("No dataset requested")
    for ds in datasets:
        split_datasets(ds)
    return datasets


def _open_source(db, source):
    """Return (source, owned) where owned sources are closed by the caller."""
    if source is not None:
        return source, False
    return DatasetSource(db), True


def _need_db(db, datasets):
    if db is not None:
        return gdb_open(db)
    if all(is_file_dataset(p) for ds in datasets for p in split_datasets(ds)):
        return None
    return gdb_open(None)


def gfeature_dataset(features, dataset, db=None, method='mean', strand='none', value='score',
                     log2=None, extend=None, start=None, stop=None, fstart=None, fstop=None,
                     position=5, limit=None, subfeature=False, set_strand=False,
                     source=None, progress=None):
    """
    Collect one dataset score per named feature.

    Each row of *features* is looked up in the database by its name and
    type columns, its region is adjusted as requested, and the dataset
    values overlapping the region are strand-filtered and combined into one
    score. One column is appended per dataset, in row order.

    Parameters
    ----------
    features : DataFrame
        Feature table with ``Name`` and ``Type`` (or ``Class``) columns,
        matched case-insensitively.
    dataset : str or list of str
        Dataset(s) to collect. Names joined by ``&`` or ``,`` are pooled.
        Files are given as ``file:/path/data.bw`` or ``file:/path/data.wib``.
    db : FeatureDB, str or Path, optional
        Feature database, GFF3 path, or configured database name.
    method : str, default "mean"
        count, sum, mean, median, min, max, range or stddev.
    strand : str, default "none"
        sense, antisense or none.
    value : str, default "score"
        score, count or length.
    log2 : bool, optional
        Dataset values are log2. Inferred from the dataset name when None.
    extend : int, optional
        Extend the feature by this many bp on both sides.
    start, stop : int, optional
        Offsets from the anchor given by *position*, upstream negative.
    fstart, fstop : float, optional
        Offsets as fractions of the feature length.
    position : int, default 5
        Anchor for offsets: 5, 3 or 1 (midpoint).
    limit : int, optional
        Minimum feature length for fractional offsets. Defaults to
        ``CONFIG['fractional_limit']``.
    subfeature : bool, default False
        Score exons (or CDS/UTRs) separately and combine them.
    set_strand : bool, default False
        Take the feature strand from the table's ``Strand`` column.
    source : DatasetSource, optional
        Source to reuse (its file cache stays open). A private source is
        created and closed otherwise.
    progress : bool, str or callable, optional
        Progress reporting style.

    Returns
    -------
    DataFrame
        Copy of *features* with one float column per dataset. Rows whose
        feature is not found, or that have no data, hold NaN.

    Raises
    ------
    ValueError
        If the dataset, method, database or name/type columns are missing,
        or any option is invalid.

    See Also
    --------
    ggenome_dataset : Collect scores for genomic windows.
    gregion_score : Collect a score for one region.

    Examples
    --------
    >>> import pybiotoolbox as pb
    >>> import pandas as pd
    >>> db = pb.gdb_open("annotation.gff3")  # doctest: +SKIP
    >>> genes = pd.DataFrame({"Name": ["YAL001C"], "Type": ["gene"]})
    >>> pb.gfeature_dataset(genes, "nucleosome", db=db, method="mean")  # doctest: +SKIP
    """
    method = parse_method(method)
    strand_mode = parse_strand_mode(strand)
    value_type = parse_value_type(value)
    if features is None:
        raise ValueError("No feature list defined")
    datasets = _check_datasets(dataset)
    db = gdb_open(db)

    name_col = _find_column(features, 'name')
    type_col = _find_column(features, 'type', 'class')
    if name_col is None or type_col is None:
        raise ValueError("Unable to identify Name and/or Type columns")
    strand_col = _find_column(features, 'strand') if set_strand else None
    if set_strand and strand_col is None:
        raise ValueError("set_strand requires a Strand column")

    adjustment = Adjustment(extend=extend, start=start, stop=stop, fstart=fstart, fstop=fstop,
                            position=position, limit=limit, subfeature=subfeature)
    resolver = RegionResolver(db, adjustment)
    source, owned = _open_source(db, source)

    out = features.copy()
    try:
        for ds in datasets:
            log = infer_log2(ds, log2)
            scores = []
            with _progress_context(progress, total=len(features), desc=dataset_column_name(ds)) as report:
                for i in range(len(features)):
                    scores.append(_feature_score(
                        resolver, source, features, i, ds, method, strand_mode, value_type, log,
                        name_col, type_col, strand_col))
                    report(i + 1)
            out[dataset_column_name(ds)] = _null_to_nan(scores, index=out.index).to_numpy()
    finally:
        if owned:
            source.close()
    return out


def _feature_score(resolver, source, features, i, dataset, method, strand_mode, value_type, log,
                   name_col, type_col, strand_col):
    name = features[name_col].iat[i]
    ftype = features[type_col].iat[i]
    override = None
    if strand_col is not None:
        try:
            override = parse_strand(features[strand_col].iat[i])
        except ValueError as exc:
            warnings.warn(f"{exc} for '{name}' at table row {i + 1}", stacklevel=3)
            return NULL

    feature = resolver.lookup(name, ftype, where=f"table row {i + 1}")
    if feature is None:
        return NULL

    if resolver.adjustment.mode == 'subfeature':
        segments = resolver.subfeature_segments(feature, strand=override)
        parts = [_segment_score(source, seg, dataset, method, strand_mode, value_type, log)
                 for seg in segments]
        return combine_scores(parts, method, log2=log)

    segment = resolver.resolve(feature, strand=override)
    if segment is None:
        warnings.warn(f"Region for '{name}' at table row {i + 1} is outside the chromosome", stacklevel=3)
        return NULL
    return _segment_score(source, segment, dataset, method, strand_mode, value_type, log)


def ggenome_dataset(windows, dataset, db=None, method='mean', strand='none', value='score',
                    log2=None, source=None, progress=None):
    """
    Collect one dataset score per genomic window.

    Windows are taken as given (1-based, inclusive); there is no feature
    lookup or strand-relative adjustment, and window segments are
    unstranded.

    Parameters
    ----------
    windows : DataFrame
        Table with chromosome (``Chromosome``/``chrom``/``seq_id``),
        ``Start`` and ``Stop`` (or ``End``) columns.
    dataset : str or list of str
        Dataset(s) to collect.
    db : FeatureDB, str or Path, optional
        Feature database. Not needed when only file datasets are used.
    method, strand, value, log2, source, progress
        As for ``gfeature_dataset``.

    Returns
    -------
    DataFrame
        Copy of *windows* with one float column per dataset.

    Raises
    ------
    ValueError
        If required columns or options are missing or invalid.

    See Also
    --------
    gfeature_dataset : Collect scores for named features.
    ggenome_windows : Generate windows tiling the genome.
    """
    method = parse_method(method)
    strand_mode = parse_strand_mode(strand)
    value_type = parse_value_type(value)
    if windows is None:
        raise ValueError("No window list defined")
    datasets = _check_datasets(dataset)
    db = _need_db(db, datasets)

    chr_col = _find_column(windows, r'chr.*', r'seq_?id')
    start_col = _find_column(windows, 'start')
    stop_col = _find_column(windows, 'stop', 'end')
    if chr_col is None or start_col is None or stop_col is None:
        raise ValueError("Unable to identify Chromosome, Start, and/or Stop columns")

    source, owned = _open_source(db, source)
    out = windows.copy()
    try:
        for ds in datasets:
            log = infer_log2(ds, log2)
            scores = []
            with _progress_context(progress, total=len(windows), desc=dataset_column_name(ds)) as report:
                for i in range(len(windows)):
                    chrom = str(windows[chr_col].iat[i])
                    wstart = int(windows[start_col].iat[i])
                    wstop = int(windows[stop_col].iat[i])
                    if wstart > wstop or wstop < 1:
                        warnings.warn(
                            f"Window at table row {i + 1}, chromosome {chrom} position {wstart} "
                            "is not a valid region", stacklevel=2)
                        scores.append(NULL)
                    else:
                        segment = Segment(chrom, max(wstart, 1), wstop, Strand.UNSTRANDED)
                        scores.append(_segment_score(
                            source, segment, ds, method, strand_mode, value_type, log))
                    report(i + 1)
            out[dataset_column_name(ds)] = _null_to_nan(scores, index=out.index).to_numpy()
    finally:
        if owned:
            source.close()
    return out


def gregion_score(dataset, chrom, start, stop, db=None, method='mean', strand=0,
                  strand_mode='none', value='score', log2=None, source=None):
    """
    Collect the dataset score of a single region.

    Parameters
    ----------
    dataset : str
        Dataset to collect.
    chrom : str
        Chromosome name.
    start, stop : int
        Region coordinates (1-based, inclusive).
    db : FeatureDB, str or Path, optional
        Feature database. Not needed for file datasets.
    method : str, default "mean"
        Combination method.
    strand : int or str, default 0
        Strand of the region, used by *strand_mode*.
    strand_mode : str, default "none"
        sense, antisense or none.
    value, log2, source
        As for ``gfeature_dataset``.

    Returns
    -------
    float, int or None
        The score, or ``NULL`` (``None``) when no values are found.

    Raises
    ------
    ValueError
        If coordinates, dataset or method are missing or invalid.

    Examples
    --------
    >>> import pybiotoolbox as pb
    >>> pb.gregion_score("file:/data/signal.bw", "chrI", 1000, 2000, method="max")  # doctest: +SKIP
    """
    method = parse_method(method)
    strand_mode = parse_strand_mode(strand_mode)
    value_type = parse_value_type(value)
    if not chrom or start is None or stop is None:
        raise ValueError("One or more genomic region coordinates are missing")
    datasets = _check_datasets(dataset)
    if len(datasets) != 1:
        raise ValueError("gregion_score takes a single dataset")
    db = _need_db(db, datasets)
    lo, hi = sorted((int(start), int(stop)))
    if hi < 1:
        raise ValueError(f"Region {chrom}:{start}-{stop} lies before the chromosome start")
    segment = Segment(str(chrom), max(lo, 1), hi, strand)

    source, owned = _open_source(db, source)
    try:
        return _segment_score(source, segment, datasets[0], method, strand_mode, value_type,
                              infer_log2(datasets[0], log2))
    finally:
        if owned:
            source.close()


def gregion_hash(dataset, name, type, db=None, strand='none', value='score', extend=None,
                 start=None, stop=None, position=5, set_strand=None, source=None):
    """
    Collect dataset values across a feature as a position map.

    Positions are relative to the feature's anchor (its 5' end, or the
    anchor chosen by *position* when offsets are given), oriented by the
    feature strand, so maps are comparable between features.

    Parameters
    ----------
    dataset : str
        Dataset to collect.
    name, type : str
        Feature name and type.
    db : FeatureDB, str or Path, optional
        Feature database.
    strand : str, default "none"
        sense, antisense or none.
    value : str, default "score"
        ``score`` (mean of the scores at a position), ``count`` (number of
        datapoints at a position) or ``length`` (mean datapoint length).
    extend : int, optional
        Extend the feature by this many bp on both sides.
    start, stop : int, optional
        Offsets from the anchor, upstream negative.
    position : int, default 5
        Anchor for offsets: 5, 3 or 1 (midpoint).
    set_strand : int or str, optional
        Strand overriding the feature's own.
    source : DatasetSource, optional
        Source to reuse.

    Returns
    -------
    dict or None
        ``{relative_position: value}`` sorted by position, empty when no
        data is found, or ``None`` when the feature cannot be resolved.

    Examples
    --------
    >>> import pybiotoolbox as pb
    >>> pb.gregion_hash("nucleosome", "YAL001C", "gene", db="cerevisiae",
    ...                 start=-500, stop=500)  # doctest: +SKIP
    """
    strand_mode = parse_strand_mode(strand)
    value_type = parse_value_type(value)
    if name is None or type is None:
        raise ValueError("The feature name and/or type are missing")
    datasets = _check_datasets(dataset)
    if len(datasets) != 1:
        raise ValueError("gregion_hash takes a single dataset")
    db = gdb_open(db)

    resolver = RegionResolver(db, Adjustment(extend=extend, start=start, stop=stop, position=position))
    feature = resolver.lookup(name, type)
    if feature is None:
        return NULL
    if set_strand is not None:
        feature = dataclasses.replace(feature, strand=parse_strand(set_strand))
    segment = resolver.resolve(feature)
    if segment is None:
        warnings.warn(f"Region for '{name}' is outside the chromosome", stacklevel=2)
        return NULL

    source, owned = _open_source(db, source)
    try:
        positions, values = _gather(source, segment, datasets[0], strand_mode, value_type)
    finally:
        if owned:
            source.close()

    collected = defaultdict(list)
    for pos, val in zip(positions.tolist(), values.tolist()):
        collected[pos].append(val)

    anchor = resolver.anchor(feature)
    reverse = segment.strand == Strand.REVERSE
    result = {}
    for pos in sorted(collected, reverse=reverse):
        vals = collected[pos]
        rel = anchor - pos if reverse else pos - anchor
        if value_type is ValueType.COUNT:
            result[rel] = int(sum(vals))
        else:
            result[rel] = float(np.mean(vals))
    return result
