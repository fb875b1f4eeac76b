"""
pybiotoolbox - Genomic interval scoring over features and signal files
"""

__version__ = '0.1.0'

from ._shared import (
    CONFIG,
    NULL,
    Method,
    Strand,
    StrandMode,
    ValueType,
    format_score,
    infer_log2,
    parse_strand,
)
from ._wiggle import ScaledWiggle, write_wig
from .bigwig import BigWigFile, write_bigwig
from .collect import gfeature_dataset, ggenome_dataset, gregion_hash, gregion_score
from .config import (
    exclude_tags,
    features_to_types,
    gconfig_get,
    gconfig_load,
    gconfig_reset,
    gdb_params,
)
from .db import Feature, FeatureDB, gdb_open
from .lists import gfeature_list, ggenome_windows
from .region import Adjustment, RegionResolver, Segment
from .scoring import aggregate, combine_scores, strand_filter
from .source import (
    Datapoint,
    DatasetSource,
    HandleCache,
    IndexedSignalRef,
    InlineScore,
    ScaledSignalRef,
)

__all__ = [
    # Configuration
    'CONFIG',
    'gconfig_load',
    'gconfig_get',
    'gconfig_reset',
    'gdb_params',
    'features_to_types',
    'exclude_tags',

    # Types
    'NULL',
    'Strand',
    'StrandMode',
    'Method',
    'ValueType',
    'Feature',
    'Segment',
    'Adjustment',
    'Datapoint',
    'InlineScore',
    'ScaledSignalRef',
    'IndexedSignalRef',

    # Database and data files
    'FeatureDB',
    'gdb_open',
    'DatasetSource',
    'HandleCache',
    'ScaledWiggle',
    'write_wig',
    'BigWigFile',
    'write_bigwig',

    # Scoring
    'RegionResolver',
    'strand_filter',
    'aggregate',
    'combine_scores',
    'format_score',
    'infer_log2',
    'parse_strand',

    # Collection
    'gfeature_dataset',
    'ggenome_dataset',
    'gregion_score',
    'gregion_hash',

    # Lists
    'gfeature_list',
    'ggenome_windows',
]
