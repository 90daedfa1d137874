"""
Well-known directories used during configuration discovery.

The global configuration document lives in the cargo home directory:
    - $CARGO_HOME, if set (relative values are taken from the working directory)
    - %USERPROFILE%\\.cargo on Windows
    - ~/.cargo elsewhere
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from cargokit.core.exceptions import CargoKitError


class DirectoryError(CargoKitError):
    """Raised when a well-known directory cannot be determined."""

    pass


def get_home_dir() -> Path:
    """
    Get the user's home directory.

    Returns:
        Path: %USERPROFILE% on Windows, Path.home() elsewhere.

    Raises:
        DirectoryError: If USERPROFILE is not set on Windows.
    """
    if os.name == "nt":
        user_profile = os.environ.get("USERPROFILE")
        if not user_profile:
            raise DirectoryError(
                "USERPROFILE environment variable is not set. "
                "Cannot determine home directory."
            )
        return Path(user_profile)
    return Path.home()


def get_cargo_home(cwd: Path, env: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    """
    Get the cargo home directory holding the global configuration.

    Args:
        cwd: Working directory used to anchor a relative CARGO_HOME
        env: Environment to read CARGO_HOME from (defaults to os.environ)

    Returns:
        Path to cargo home, or None if neither CARGO_HOME nor a home
        directory is available

    Example:
        >>> get_cargo_home(Path("/work"), {"CARGO_HOME": "tools/cargo"})
        PosixPath('/work/tools/cargo')
    """
    env = os.environ if env is None else env
    cargo_home = env.get("CARGO_HOME")
    if cargo_home:
        path = Path(cargo_home)
        return path if path.is_absolute() else cwd / path
    try:
        return get_home_dir() / ".cargo"
    except (DirectoryError, RuntimeError):
        return None


__all__ = ["DirectoryError", "get_home_dir", "get_cargo_home"]
