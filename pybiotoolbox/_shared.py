"""
Shared globals and utilities for pybiotoolbox modules.

Thread-safety note:
The module-level ``CONFIG`` dict is process-global and not synchronized for
concurrent mutation. Opened data files are cached per ``DatasetSource``
instance, so each worker process should create its own source.
"""

import enum
import math
import re
import sys as _sys
from contextlib import contextmanager

import numpy as _numpy
import pandas as _pandas

# Runtime configuration
CONFIG = {
    'fractional_limit': 1000,       # Min feature length for fractional offsets
    'log2_pattern': r'log2',        # Dataset names matching this are log2 data
    'debug': False,                 # Debug prints
    'progress': False,              # False, True, 'text', 'tqdm', or callable
    'progress_style': 'text',       # Default when progress=True
}

# Distinguished "no data" result; never conflated with 0
NULL = None
NULL_TEXT = '.'


class Strand(enum.IntEnum):
    """Strand of a feature, segment or datapoint."""

    FORWARD = 1
    REVERSE = -1
    UNSTRANDED = 0


class StrandMode(enum.Enum):
    """Which datapoints qualify relative to the segment strand."""

    SENSE = 'sense'
    ANTISENSE = 'antisense'
    NONE = 'none'


class Method(enum.Enum):
    """Methods for combining the values found in a segment."""

    COUNT = 'count'
    SUM = 'sum'
    MEAN = 'mean'
    MEDIAN = 'median'
    MIN = 'min'
    MAX = 'max'
    RANGE = 'range'
    STDDEV = 'stddev'


class ValueType(enum.Enum):
    """Quantity contributed by each datapoint."""

    SCORE = 'score'
    COUNT = 'count'
    LENGTH = 'length'


_STRAND_CODES = {
    '+': Strand.FORWARD, '1': Strand.FORWARD, '+1': Strand.FORWARD,
    'f': Strand.FORWARD, 'w': Strand.FORWARD, 'watson': Strand.FORWARD,
    'forward': Strand.FORWARD, 'plus': Strand.FORWARD, 'top': Strand.FORWARD,
    '-': Strand.REVERSE, '-1': Strand.REVERSE, 'r': Strand.REVERSE,
    'c': Strand.REVERSE, 'crick': Strand.REVERSE, 'reverse': Strand.REVERSE,
    'minus': Strand.REVERSE, 'bottom': Strand.REVERSE,
    '.': Strand.UNSTRANDED, '0': Strand.UNSTRANDED, '': Strand.UNSTRANDED,
    '?': Strand.UNSTRANDED,
}


def parse_strand(value):
    """
    Convert a strand encoding into a ``Strand``.

    Accepts integers (``1``, ``-1``, ``0``), ``Strand`` members and the
    usual text encodings (``+``, ``-``, ``.``, ``f``, ``r``, ``w``, ``c``,
    ``watson``, ``crick``). Missing values map to ``Strand.UNSTRANDED``.

    Raises
    ------
    ValueError
        If the value is not a recognized strand encoding.
    """
    if isinstance(value, Strand):
        return value
    if value is None:
        return Strand.UNSTRANDED
    if isinstance(value, float):
        if math.isnan(value):
            return Strand.UNSTRANDED
        if value.is_integer():
            value = int(value)
    if isinstance(value, (int, _numpy.integer)):
        if value > 0:
            return Strand.FORWARD
        if value < 0:
            return Strand.REVERSE
        return Strand.UNSTRANDED
    key = str(value).strip().lower()
    if key in _STRAND_CODES:
        return _STRAND_CODES[key]
    raise ValueError(f"Invalid strand value {value!r}")


def parse_strand_mode(value):
    if isinstance(value, StrandMode):
        return value
    if value is None:
        return StrandMode.NONE
    key = str(value).strip().lower()
    if key in ('all', 'none', 'both', ''):
        return StrandMode.NONE
    try:
        return StrandMode(key)
    except ValueError:
        raise ValueError(
            f"Invalid strand mode {value!r}: must be 'sense', 'antisense' or 'none'"
        ) from None


def parse_method(value):
    if isinstance(value, Method):
        return value
    if not value:
        raise ValueError("No combination method defined")
    key = str(value).strip().lower()
    try:
        return Method(key)
    except ValueError:
        valid = ", ".join(m.value for m in Method)
        raise ValueError(f"Unrecognized method '{value}': must be one of {valid}") from None


def parse_value_type(value):
    if isinstance(value, ValueType):
        return value
    if value is None:
        return ValueType.SCORE
    key = str(value).strip().lower()
    try:
        return ValueType(key)
    except ValueError:
        raise ValueError(
            f"Invalid value type {value!r}: must be 'score', 'count' or 'length'"
        ) from None


def split_datasets(dataset):
    """Split an ampersand/comma joined dataset identifier into its parts."""
    if dataset is None:
        raise ValueError("No dataset requested")
    if isinstance(dataset, (list, tuple)):
        parts = [str(d).strip() for d in dataset]
    else:
        parts = [p.strip() for p in re.split(r'[&,]', str(dataset))]
    parts = [p for p in parts if p]
    if not parts:
        raise ValueError("No dataset requested")
    return parts


def infer_log2(dataset, log2=None):
    """Return the explicit log2 flag, or infer it from the dataset name."""
    if log2 is not None:
        return bool(log2)
    name = dataset if isinstance(dataset, str) else '&'.join(dataset)
    return re.search(CONFIG.get('log2_pattern', 'log2'), name, re.IGNORECASE) is not None


def format_score(value, digits=None):
    """Format a collected value for text output, mapping ``NULL`` to ``'.'``."""
    if value is NULL:
        return NULL_TEXT
    if isinstance(value, float) and math.isnan(value):
        return NULL_TEXT
    if digits is not None and isinstance(value, float):
        return f"{value:.{digits}f}"
    return str(value)


def _as_list(values, name):
    if values is None:
        return []
    out = [values] if isinstance(values, str) else list(values)
    for item in out:
        if not isinstance(item, str) or not item:
            raise ValueError(f"{name} must contain non-empty strings")
    return out


def _find_column(df, *patterns):
    """Return the first column whose name fully matches one of the patterns."""
    for pattern in patterns:
        rx = re.compile(pattern, re.IGNORECASE)
        for col in df.columns:
            if rx.fullmatch(str(col)):
                return col
    return None


class _TextProgress:
    """Percent counter on stderr, rewritten only when the percentage changes."""

    def __init__(self, desc=None):
        self.label = desc or "progress"
        self._last = None

    def __call__(self, done, total, pct):
        if pct == self._last:
            return
        self._last = pct
        _sys.stderr.write(f"\r{self.label}: {pct}%" + ("\n" if pct >= 100 else ""))
        _sys.stderr.flush()


def _tqdm_progress(total, desc):
    try:
        from tqdm.auto import tqdm
    except ImportError as exc:
        raise ImportError(
            "progress='tqdm' requires tqdm. Install with: pip install tqdm"
        ) from exc
    bar = tqdm(total=total, desc=desc)

    def update(done, total, pct):
        bar.update(done - bar.n)

    return update, bar.close


def _make_progress_callback(progress, total=None, desc=None):
    """
    Return ``(callback, close)`` for a progress setting.

    *progress* is False/None (silent, unless ``CONFIG['progress']`` is set),
    True (``CONFIG['progress_style']``), ``'text'``, ``'tqdm'`` or a
    ``callback(done, total, pct)``. ``close`` may be None.
    """
    if progress is None:
        progress = CONFIG.get('progress', False)
    if not progress:
        return None, None
    if callable(progress):
        return progress, None

    style = CONFIG.get('progress_style', 'text') if progress is True else progress
    if style == 'text':
        return _TextProgress(desc), None
    if style == 'tqdm':
        return _tqdm_progress(total, desc)
    raise ValueError(f"Unknown progress style {style!r}: must be 'text', 'tqdm' or a callable")


@contextmanager
def _progress_context(progress=None, total=None, desc=None):
    """Yield a ``report(done)`` function bound to the chosen progress style."""
    cb, close = _make_progress_callback(progress, total=total, desc=desc)

    def report(done):
        if cb is None:
            return
        pct = 100 if not total else int(100 * done / total)
        cb(done, total, pct)

    try:
        yield report
    finally:
        if close:
            close()


def _null_to_nan(values, index=None):
    """Convert collected values to a float Series with NaN for ``NULL``."""
    return _pandas.Series(
        [_numpy.nan if v is NULL else v for v in values], index=index, dtype='float64'
    )
