"""Configuration file access: database parameters, feature aliases and exclusions."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml

from ._shared import _as_list

_DEFAULTS: dict[str, Any] = {
    'default_db': None,
    'databases': {},
    'features': {
        'gene': ['ORF', 'gene', 'ncRNA', 'snRNA', 'snoRNA'],
    },
    'exclude_tags': {},
}

_LOADED: dict[str, Any] | None = None
_LOADED_PATH: str | None = None


def _config_candidates():
    env = os.environ.get('BIOTOOLBOX')
    if env:
        yield Path(env)
    yield Path.home() / 'biotoolbox.yaml'


def _merge(base, override):
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key].update(value)
        else:
            out[key] = value
    return out


def gconfig_load(path: str | os.PathLike | None = None) -> dict[str, Any]:
    """
    Load the configuration file.

    The file is searched for in this order: the explicit *path*, the file
    named by the ``BIOTOOLBOX`` environment variable, and
    ``~/biotoolbox.yaml``. When none exists the built-in defaults are used.
    Values from the file are merged over the defaults.

    Parameters
    ----------
    path : str or Path, optional
        Explicit configuration file.

    Returns
    -------
    dict
        The active configuration.

    Raises
    ------
    FileNotFoundError
        If an explicit *path* does not exist.
    ValueError
        If the file is not a YAML mapping.

    Examples
    --------
    >>> import pybiotoolbox as pb
    >>> cfg = pb.gconfig_load("biotoolbox.yaml")  # doctest: +SKIP
    >>> cfg["features"]["gene"]  # doctest: +SKIP
    ['ORF', 'gene', 'ncRNA', 'snRNA', 'snoRNA']
    """
    global _LOADED, _LOADED_PATH

    if path is not None:
        candidates = [Path(path)]
        if not candidates[0].exists():
            raise FileNotFoundError(path)
    else:
        candidates = [p for p in _config_candidates() if p.exists()]

    data: dict[str, Any] = {}
    source = None
    if candidates:
        source = candidates[0]
        try:
            data = yaml.safe_load(source.read_text(encoding='utf-8')) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid configuration file '{source}': {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file '{source}' must contain a mapping")

    _LOADED = _merge(_DEFAULTS, data)
    _LOADED_PATH = str(source) if source else None
    return _LOADED


def gconfig_get(section: str | None = None) -> Any:
    """Return the active configuration, or one section of it."""
    cfg = _LOADED if _LOADED is not None else gconfig_load()
    if section is None:
        return cfg
    return cfg.get(section)


def gconfig_reset() -> None:
    """Forget the loaded configuration so the next access reloads it."""
    global _LOADED, _LOADED_PATH
    _LOADED = None
    _LOADED_PATH = None


def gdb_params(name: str | None = None) -> dict[str, Any]:
    """
    Return the connection parameters of a configured database.

    Parameters
    ----------
    name : str, optional
        Database name. Defaults to the configured ``default_db``.

    Raises
    ------
    ValueError
        If no name is given and no default database is configured.
    KeyError
        If the database is not configured.
    """
    cfg = gconfig_get()
    if name is None:
        name = cfg.get('default_db')
        if not name:
            raise ValueError("No database name given and no default_db configured")
    dbs = cfg.get('databases') or {}
    if name not in dbs:
        raise KeyError(f"Database '{name}' is not configured")
    params = dict(dbs[name] or {})
    params.setdefault('adaptor', 'gff3')
    params['name'] = name
    return params


def features_to_types(alias: str | list[str]) -> list[str]:
    """
    Expand a feature alias into the concrete feature types it stands for.

    An alias defined in the ``features`` section expands to its list of
    types. Anything else is taken as a literal type (``type`` or
    ``type:source``); several may be joined by commas.

    Examples
    --------
    >>> import pybiotoolbox as pb
    >>> pb.features_to_types("gene")
    ['ORF', 'gene', 'ncRNA', 'snRNA', 'snoRNA']
    >>> pb.features_to_types("tRNA,rRNA")
    ['tRNA', 'rRNA']
    """
    aliases = gconfig_get('features') or {}
    names = alias if isinstance(alias, (list, tuple)) else [alias]
    types: list[str] = []
    for item in names:
        if item in aliases:
            types.extend(_as_list(aliases[item], f"features.{item}"))
        else:
            types.extend(t.strip() for t in str(item).split(',') if t.strip())
    return types


def exclude_tags() -> dict[str, list[str]]:
    """Return the attribute exclusion rules as ``{tag: [values]}``."""
    rules = gconfig_get('exclude_tags') or {}
    return {str(tag): [str(v) for v in _as_list_any(values)] for tag, values in rules.items()}


def _as_list_any(values):
    if values is None:
        return []
    if isinstance(values, (list, tuple)):
        return list(values)
    return [values]
