"""Run-time settings, built once at startup and passed to every component."""

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import yaml

from archpi import __version__
from archpi.errors import ConfigError

logger = logging.getLogger("ArchPI")

ROOT_DIR = Path(__file__).parent.resolve()
CONFIG_DIR = ROOT_DIR / "configs"
ENV_CONFIG = "ARCHPI_CONFIG"


@dataclass(frozen=True)
class Settings:
    version: str = __version__

    # Per-user state
    temp_dir: Path = Path.home() / ".archpi_temp"
    backup_dir: Path = Path.home() / ".archpi_backup"
    log_file: Path = Path.home() / ".archpi.log"
    assets_dir: Path = ROOT_DIR.parent / "assets"
    user_config_dir: Path = Path.home() / ".config"
    bashrc: Path = Path.home() / ".bashrc"

    # Dialog geometry
    dialog_height: int = 20
    dialog_width: int = 70

    # Network
    connectivity_url: str = "https://archlinux.org"
    connectivity_timeout: int = 3

    # Pacman
    pacman_conf: Path = Path("/etc/pacman.conf")
    mirrorlist: Path = Path("/etc/pacman.d/mirrorlist")
    mirror_country: str = "Brazil"
    mirror_timeout: int = 60
    parallel_downloads: int = 10

    # Locale
    locale_gen: Path = Path("/etc/locale.gen")
    locale_conf: Path = Path("/etc/locale.conf")
    locales: Tuple[str, ...] = ("en_US.UTF-8 UTF-8", "pt_BR.UTF-8 UTF-8")
    lang: str = "en_US.UTF-8"

    # Boot
    loader_dir: Path = Path("/boot/loader")
    plymouth_conf: Path = Path("/etc/plymouth/plymouthd.conf")
    plymouth_theme: str = "spinner"
    systemd_unit_dir: Path = Path("/etc/systemd/system")
    boot_count_file: Path = Path("/var/cache/archpi-boot-count")
    boot_failure_threshold: int = 3

    # System drop-ins
    sysctl_dir: Path = Path("/etc/sysctl.d")
    modprobe_dir: Path = Path("/etc/modprobe.d")
    udev_rules_dir: Path = Path("/etc/udev/rules.d")
    environment_dir: Path = Path("/etc/environment.d")
    crontab: Path = Path("/etc/crontab")
    local_bin: Path = Path("/usr/local/bin")
    zswap_default_gb: int = 20

    @property
    def loader_conf(self) -> Path:
        return self.loader_dir / "loader.conf"

    @property
    def loader_entries(self) -> Path:
        return self.loader_dir / "entries"


def _coerce(name: str, default, value):
    if isinstance(default, Path):
        return Path(value).expanduser()
    if isinstance(default, tuple):
        if isinstance(value, str):
            return (value,)
        return tuple(value)
    if isinstance(default, bool) or not isinstance(default, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Setting '{name}' must be an integer, got {value!r}")


def load_settings(path: Optional[Path] = None) -> Settings:
    """Build Settings from defaults and an optional YAML override file.

    The override file is taken from ``path`` or from ``$ARCHPI_CONFIG``.
    Unknown keys are rejected so typos do not pass silently.
    """
    settings = Settings()
    if path is None and os.environ.get(ENV_CONFIG):
        path = Path(os.environ[ENV_CONFIG])
    if path is None:
        return settings

    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")

    known = {f.name: f for f in dataclasses.fields(Settings)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigError(f"Unknown settings in {path}: {', '.join(unknown)}")

    overrides = {
        name: _coerce(name, getattr(settings, name), value)
        for name, value in data.items()
    }
    logger.info(f"Loaded settings overrides from {path}: {', '.join(sorted(overrides))}")
    return dataclasses.replace(settings, **overrides)


def read_config(name: str) -> str:
    """Text of a configuration file bundled in ``archpi/configs``."""
    return (CONFIG_DIR / name).read_text()
