import copy
import os

import toml
import yaml

DEFAULT_CONFIG_PATH = "./config.toml"
ENV_CONFIG_DIR_VAR = "LOGWATCHER_CONFIG_DIR"

DEFAULT_CONFIG = {
    "watcher": {
        "poll_interval": 1.0,
        "max_workers": 8,
        "use_polling": False,
        "skip_to_last_line": True,
    },
    "logging": {
        "level": "INFO",
        "log_dir": "logs",
    },
    "watch_files": {
        "configs_dir": "watch_files.yaml",
    },
}


def _merge(base, override):
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(cli_config_path=None):
    """
    Load configuration from a TOML file, merged over DEFAULT_CONFIG.

    Precedence:
      1. cli_config_path if provided.
      2. Environment variable LOGWATCHER_CONFIG_DIR (looking for config.toml).
      3. Default to ./config.toml.

    A path given explicitly (1 or 2) must exist. When the default file is
    missing the built-in defaults are returned.

    Returns:
        dict: The configuration settings.
    """
    if cli_config_path:
        config_path = cli_config_path
    elif os.environ.get(ENV_CONFIG_DIR_VAR):
        config_path = os.path.join(os.environ[ENV_CONFIG_DIR_VAR], "config.toml")
    else:
        config_path = DEFAULT_CONFIG_PATH
        if not os.path.exists(config_path):
            return copy.deepcopy(DEFAULT_CONFIG)

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        config_data = toml.load(f)

    return _merge(DEFAULT_CONFIG, config_data)


def _normalize_watch_file(item):
    if isinstance(item, str):
        item = {"path": item}
    if not isinstance(item, dict) or not item.get("path"):
        raise ValueError(f"Invalid watch file entry: {item!r}")
    item.setdefault("name", os.path.basename(item["path"]))
    return item


def load_watch_files_config(watch_files_path):
    """
    Load the list of files to tail from a YAML file.

    Entries are either a bare path or a mapping with ``path`` and optional
    ``name`` and ``skip_to_last_line`` keys.

    Args:
        watch_files_path (str): Path to the YAML configuration file.

    Returns:
        dict: ``{"watch_files": [...]}`` with every entry as a mapping.
    """
    if not os.path.exists(watch_files_path):
        raise FileNotFoundError(
            f"Watch files configuration file not found: {watch_files_path}"
        )
    with open(watch_files_path, "r") as f:
        data = yaml.safe_load(f) or {}
    return {
        "watch_files": [
            _normalize_watch_file(item) for item in data.get("watch_files") or []
        ]
    }


def load_watch_files_configs(path):
    """
    Load watch files from a YAML file or a directory containing YAML files.
    If a directory is provided, all .yaml/.yml files are loaded and aggregated.

    Args:
        path (str): Path to a YAML file or directory.

    Returns:
        dict: Aggregated configuration with key 'watch_files'.
    """
    if os.path.isdir(path):
        aggregated = {"watch_files": []}
        for filename in sorted(os.listdir(path)):
            if filename.endswith((".yaml", ".yml")):
                data = load_watch_files_config(os.path.join(path, filename))
                aggregated["watch_files"].extend(data["watch_files"])
        return aggregated
    return load_watch_files_config(path)
