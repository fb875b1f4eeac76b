"""Generate feature lists and genomic windows to collect scores for."""

import pandas as pd

from .config import exclude_tags, features_to_types
from .db import gdb_open


def _is_excluded(attributes, rules):
    for tag, excluded in rules.items():
        values = attributes.get(tag)
        if values and any(v in excluded for v in values):
            return True
    return False


def gfeature_list(db, types, exclude=True):
    """
    List the features of the given types.

    Parameters
    ----------
    db : FeatureDB, str or Path
        Feature database.
    types : str or list of str
        Feature types, ``type:source`` names or configured aliases.
    exclude : bool, default True
        Drop features whose attributes match the configured
        ``exclude_tags`` rules (e.g. ``orf_classification: Dubious``).

    Returns
    -------
    DataFrame
        Columns ``Name``, ``Type`` and ``Strand``, in database order.

    Raises
    ------
    ValueError
        If no feature type is given.

    Examples
    --------
    >>> import pybiotoolbox as pb
    >>> genes = pb.gfeature_list("cerevisiae", "gene")  # doctest: +SKIP
    """
    if not types:
        raise ValueError("No feature types requested")
    db = gdb_open(db)
    rules = exclude_tags() if exclude else {}
    rows = []
    for feature in db.features(type=features_to_types(types)):
        if rules and _is_excluded(feature.attributes, rules):
            continue
        rows.append((feature.name, feature.type, int(feature.strand)))
    return pd.DataFrame(rows, columns=['Name', 'Type', 'Strand'])


def ggenome_windows(db, win, step=None, chroms=None):
    """
    Tile the genome with windows.

    Parameters
    ----------
    db : FeatureDB, str or Path
        Feature database supplying chromosome lengths.
    win : int
        Window size in bp.
    step : int, optional
        Distance between window starts. Defaults to *win*.
    chroms : list of str, optional
        Restrict to these chromosomes.

    Returns
    -------
    DataFrame
        Columns ``Chromosome``, ``Start`` and ``Stop`` (1-based, inclusive);
        the last window of a chromosome ends at its length.

    Raises
    ------
    ValueError
        If *win* or *step* is not a positive integer.

    Examples
    --------
    >>> import pybiotoolbox as pb
    >>> windows = pb.ggenome_windows("cerevisiae", 500)  # doctest: +SKIP
    """
    if win is None or int(win) < 1:
        raise ValueError(f"Invalid window size {win!r}")
    win = int(win)
    step = win if step is None else int(step)
    if step < 1:
        raise ValueError(f"Invalid step size {step!r}")
    db = gdb_open(db)

    rows = []
    for chrom, size in db.chromosomes().items():
        if chroms is not None and chrom not in chroms:
            continue
        for start in range(1, size + 1, step):
            rows.append((chrom, start, min(start + win - 1, size)))
    return pd.DataFrame(rows, columns=['Chromosome', 'Start', 'Stop'])
