"""Read KEY=VALUE pairs from .env files for batch upload."""
import io
from pathlib import Path

from dotenv import dotenv_values


def parse_env_file(content: str) -> dict[str, str]:
    """
    Parse .env text into name/value pairs.

    Comments, blank lines, ``export`` prefixes and quoting follow python-dotenv.
    Variable interpolation is disabled so values are uploaded exactly as
    written. Keys without a value are dropped. Keys that are not valid secret
    names are kept so the caller can report them.
    """
    values = dotenv_values(stream=io.StringIO(content), interpolate=False)
    return {key: value for key, value in values.items() if value is not None}


def read_env_file(path: str | Path) -> dict[str, str]:
    """
    Read and parse a .env file from disk.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    return parse_env_file(Path(path).read_text(encoding="utf-8"))
