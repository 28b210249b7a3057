"""Installation of the ``groq-whisper`` command as a symlink."""

import os
import sys
import shutil
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import InstallError

logger = logging.getLogger(__name__)

LINK_NAME = "groq-whisper"
DEFAULT_INSTALL_DIR = Path("~/.local/bin")


@dataclass
class InstallResult:
    link_path: Path
    target: Path
    replaced: bool
    on_path: bool


def resolve_executable() -> Path:
    """Locate the real executable behind the running command."""
    found = shutil.which(LINK_NAME)
    if found:
        return Path(found).resolve()
    return Path(sys.argv[0]).resolve()


def install_symlink(install_dir: Optional[str] = None,
                    target: Optional[Path] = None,
                    path_env: Optional[str] = None) -> InstallResult:
    """Create or update ``<install_dir>/groq-whisper`` pointing at the executable.

    Raises:
        InstallError: If the directory cannot be created, the link path is
            taken by a regular file, or the link cannot be written
    """
    directory = Path(install_dir or DEFAULT_INSTALL_DIR).expanduser()
    target = Path(target or resolve_executable()).resolve()
    link_path = directory / LINK_NAME
    path_env = os.environ.get("PATH", "") if path_env is None else path_env

    if not target.exists():
        raise InstallError(f"Executable not found: {target}")

    if not directory.is_dir():
        logger.info(f"Creating {directory}...")
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallError(f"Cannot create {directory}: {e}") from e

    replaced = False
    if link_path.is_symlink():
        logger.info("Updating existing symlink...")
        link_path.unlink()
        replaced = True
    elif link_path.exists():
        raise InstallError(f"{link_path} already exists and is not a symlink")

    try:
        link_path.symlink_to(target)
    except OSError as e:
        raise InstallError(f"Cannot create symlink {link_path}: {e}") from e

    logger.info(f"Created symlink: {link_path} -> {target}")
    on_path = str(directory) in path_env.split(os.pathsep)
    return InstallResult(link_path=link_path, target=target, replaced=replaced, on_path=on_path)
