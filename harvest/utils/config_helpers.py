from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from omegaconf import OmegaConf
from omegaconf.dictconfig import DictConfig


def merge_configs(config_paths: List[Union[str, Path]], overrides: Optional[Mapping[str, Any]] = None) -> DictConfig:
    """
    Merge multiple YAML configuration files with precedence. Later configs override earlier ones.

    Args:
        config_paths: List of paths to YAML config files. Later configs take precedence.
        overrides: Optional mapping applied last (e.g. values given on the command line).
            Keys whose value is None are ignored so unset CLI options keep the file defaults.

    Returns:
        DictConfig: Merged configuration object

    Raises:
        ValueError: If config_paths is empty
        FileNotFoundError: If any config file doesn't exist

    Example:
        >>> config = merge_configs(["config/crawl.yaml", "my_run.yaml"], {"max_entries": 50})
    """
    if not config_paths:
        raise ValueError("config_paths is empty!")

    merged = OmegaConf.load(config_paths[0])

    for config_path in config_paths[1:]:
        config = OmegaConf.load(config_path)
        merged = OmegaConf.merge(merged, config)

    if overrides:
        merged = OmegaConf.merge(merged, OmegaConf.create(drop_none(overrides)))

    return merged


def drop_none(d: Mapping[str, Any]) -> dict:
    """Recursively remove keys whose value is None."""
    out = {}
    for k, v in d.items():
        if isinstance(v, Mapping):
            v = drop_none(v)
            if not v:
                continue
        if v is None:
            continue
        out[k] = v
    return out
