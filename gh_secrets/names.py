"""Secret name validation."""
import re
from collections.abc import Iterable, Mapping

# Letters, digits and underscores; must not start with a digit
NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
RESERVED_PREFIX = "GITHUB_"


def is_valid_name(name: str) -> bool:
    """
    Check a secret name against GitHub's naming rules.

    Args:
        name: Candidate secret name

    Returns:
        True if the name may be used for an Actions secret
    """
    if not isinstance(name, str):
        return False
    # fullmatch so a trailing newline is not accepted
    return NAME_PATTERN.fullmatch(name) is not None and not name.startswith(RESERVED_PREFIX)


def partition(
    secrets: Mapping[str, str] | Iterable[tuple[str, str]],
) -> tuple[dict[str, str], list[str]]:
    """
    Split secrets into uploadable entries and rejected names.

    Args:
        secrets: Mapping or iterable of (name, value) pairs

    Returns:
        (valid, invalid) where valid maps names to values and invalid lists the
        rejected names in input order
    """
    items = secrets.items() if isinstance(secrets, Mapping) else secrets
    valid: dict[str, str] = {}
    invalid: list[str] = []
    for name, value in items:
        if is_valid_name(name):
            valid[name] = value
        else:
            invalid.append(name)
    return valid, invalid
