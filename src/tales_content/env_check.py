"""Environment diagnostics for storage and pinning credentials.

Checks that each credential is present and looks plausible, masks secrets
for display, and flags keys defined more than once in a ``.env`` file.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import dotenv_values
from dotenv.parser import Original, parse_stream


class EnvStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    INVALID = "invalid"
    OPTIONAL_MISSING = "optional-missing"


@dataclass(frozen=True)
class EnvCheck:
    """One expected environment variable."""

    name: str
    required: bool = True
    validate: Callable[[str], bool] | None = None
    message: str = ""


@dataclass(frozen=True)
class EnvCheckResult:
    name: str
    status: EnvStatus
    display: str = ""
    message: str = ""

    @property
    def failed(self) -> bool:
        return self.status in (EnvStatus.MISSING, EnvStatus.INVALID)


ENV_CHECKS: tuple[EnvCheck, ...] = (
    EnvCheck(
        "NFT_STORAGE_KEY",
        validate=lambda v: v.startswith("eyJ"),
        message="Must be a valid NFT.Storage API key",
    ),
    EnvCheck(
        "PINATA_API_KEY",
        validate=lambda v: len(v) >= 20,
        message="Must be a valid Pinata API key",
    ),
    EnvCheck(
        "PINATA_SECRET_API_KEY",
        validate=lambda v: len(v) >= 64,
        message="Must be a valid Pinata Secret API key",
    ),
    EnvCheck("GATEWAY_HOSTS", required=False),
)


def mask(name: str, value: str) -> str:
    """Hide all but the ends of secret-looking values."""
    if "KEY" not in name:
        return value
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


def check_environment(
    env: Mapping[str, str],
    checks: tuple[EnvCheck, ...] = ENV_CHECKS,
) -> list[EnvCheckResult]:
    """Evaluate every check against ``env`` (e.g. ``os.environ``)."""
    results: list[EnvCheckResult] = []
    for check in checks:
        value = env.get(check.name, "")
        if not value:
            status = EnvStatus.MISSING if check.required else EnvStatus.OPTIONAL_MISSING
            results.append(EnvCheckResult(check.name, status))
            continue
        if check.validate is not None and not check.validate(value):
            results.append(EnvCheckResult(check.name, EnvStatus.INVALID, message=check.message))
            continue
        results.append(EnvCheckResult(check.name, EnvStatus.OK, display=mask(check.name, value)))
    return results


def read_env_file(path: Path) -> dict[str, str]:
    """Parse a dotenv file; the last definition of a key wins.

    Keys declared without a value read as empty strings.
    """
    values = dotenv_values(path, interpolate=False, encoding="utf-8")
    return {key: value or "" for key, value in values.items()}


def find_duplicate_keys(path: Path) -> list[tuple[str, int, int]]:
    """Return ``(key, previous_line, duplicate_line)`` for each redefinition (1-based lines)."""
    seen: dict[str, int] = {}
    duplicates: list[tuple[str, int, int]] = []
    with path.open(encoding="utf-8") as stream:
        for binding in parse_stream(stream):
            if binding.key is None:
                continue
            lineno = _key_line(binding.original)
            if binding.key in seen:
                duplicates.append((binding.key, seen[binding.key], lineno))
            seen[binding.key] = lineno
    return duplicates


def _key_line(original: Original) -> int:
    # Blank lines before a binding are folded into its original text
    text = original.string
    leading = text[: len(text) - len(text.lstrip())]
    return original.line + leading.count("\n")
