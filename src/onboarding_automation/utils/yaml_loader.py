import yaml
from pathlib import Path


def default_config_dir() -> Path:
    """Return the repository's config directory."""
    return Path(__file__).resolve().parents[3] / "config"


def load_yaml(filename, config_dir=None):
    """Load a YAML file, relative to the config directory unless absolute."""
    file_path = Path(filename)
    if not file_path.is_absolute() and not file_path.exists():
        file_path = Path(config_dir or default_config_dir()) / filename
    with open(file_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}
