"""Strand filtering and combination of dataset values."""

import numpy as np

from ._shared import NULL, Method, Strand, StrandMode, parse_method, parse_strand, parse_strand_mode


def strand_filter(strand, segment_strand, mode=StrandMode.NONE):
    """
    Decide whether a datapoint on *strand* qualifies for a segment.

    Unstranded datapoints always qualify. Otherwise ``sense`` keeps
    datapoints on the segment's strand, ``antisense`` keeps those on any
    other strand, and ``none`` keeps everything.

    Examples
    --------
    >>> strand_filter(0, 1, "sense")
    True
    >>> strand_filter(-1, 1, "sense")
    False
    >>> strand_filter(-1, 1, "antisense")
    True
    """
    strand = parse_strand(strand)
    if strand == Strand.UNSTRANDED:
        return True
    mode = parse_strand_mode(mode)
    if mode is StrandMode.SENSE:
        return strand == parse_strand(segment_strand)
    if mode is StrandMode.ANTISENSE:
        return strand != parse_strand(segment_strand)
    return True


def _fold(values, method):
    if method is Method.SUM:
        return float(np.sum(values))
    if method is Method.MEAN:
        return float(np.mean(values))
    if method is Method.MEDIAN:
        return float(np.median(values))
    if method is Method.MIN:
        return float(np.min(values))
    if method is Method.MAX:
        return float(np.max(values))
    if method is Method.RANGE:
        return float(np.max(values) - np.min(values))
    if method is Method.STDDEV:
        # population standard deviation
        return float(np.std(values, ddof=0))
    raise ValueError(f"Unrecognized method '{method}'")


def aggregate(values, method, log2=False):
    """
    Combine values into a single score.

    Parameters
    ----------
    values : array-like of float
        Values that survived strand filtering.
    method : str or Method
        One of count, sum, mean, median, min, max, range, stddev.
    log2 : bool, default False
        Values are log2 transformed. They are converted to linear space
        (``2**v``) before combining, and the result is converted back with
        ``log2``. Ignored by ``count``.

    Returns
    -------
    float, int or None
        ``count`` returns an int. With no values, ``count`` and ``sum``
        return 0 and every other method returns ``NULL`` (``None``).
        A non-positive linear result of a log2 dataset returns ``-inf``.

    Raises
    ------
    ValueError
        If the method is not recognized.

    Examples
    --------
    >>> aggregate([1.0, 3.0], "mean")
    2.0
    >>> round(aggregate([1.0, 3.0], "mean", log2=True), 4)
    2.3219
    >>> aggregate([], "mean") is None
    True
    >>> aggregate([], "count")
    0
    """
    method = parse_method(method)
    vals = np.asarray(values, dtype=np.float64)

    if method is Method.COUNT:
        return int(vals.size)
    if vals.size == 0:
        return 0 if method is Method.SUM else NULL

    if log2:
        vals = np.exp2(vals)
    result = _fold(vals, method)
    if log2:
        if result <= 0:
            return float('-inf')
        result = float(np.log2(result))
    return result


def combine_scores(scores, method, log2=False):
    """
    Combine per-part scores (e.g. exon scores) into one parent score.

    ``NULL`` parts are ignored; ``count`` parts are summed.
    """
    method = parse_method(method)
    present = [s for s in scores if s is not NULL]
    if method is Method.COUNT:
        return int(sum(present))
    return aggregate(present, method, log2=log2)
