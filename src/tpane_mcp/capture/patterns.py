"""Interactive prompt pattern table and YAML loader."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


class PatternLoadError(RuntimeError):
    """Raised when prompt pattern files cannot be parsed or validated."""


class PromptPattern(BaseModel):
    """A regular expression that marks a pane as waiting for input."""

    pattern: str = Field(..., description="Case-insensitive regular expression.")
    type: str = Field(..., description="Interaction kind reported to the caller.")
    message: str = Field(..., description="Human-friendly description of what is needed.")

    @field_validator("pattern")
    @classmethod
    def _validate_pattern(cls, value: str) -> str:
        if not value:
            raise ValueError("Prompt pattern must not be empty")
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid regular expression '{value}': {exc}") from exc
        return value

    @field_validator("type")
    @classmethod
    def _normalize_type(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Prompt pattern type must not be empty")
        return normalized

    def compile(self) -> re.Pattern[str]:
        return re.compile(self.pattern, re.IGNORECASE)


DEFAULT_PATTERNS: tuple[PromptPattern, ...] = (
    PromptPattern(pattern=r"password\s*:", type="password", message="Password required"),
    PromptPattern(pattern=r"passphrase\s*:", type="password", message="Passphrase required"),
    PromptPattern(pattern=r"username\s*:", type="username", message="Username required"),
    PromptPattern(pattern=r"Username for", type="git-username", message="Git username required"),
    PromptPattern(pattern=r"Password for", type="git-password", message="Git password required"),
    PromptPattern(pattern=r"\[y/N\]", type="yes-no", message="Yes/No confirmation required"),
    PromptPattern(pattern=r"\[Y/n\]", type="yes-no", message="Yes/No confirmation required"),
    PromptPattern(pattern=r"\(y/n\)", type="yes-no", message="Yes/No confirmation required"),
    PromptPattern(pattern=r"Continue\?", type="confirmation", message="Confirmation required"),
    PromptPattern(pattern=r"Are you sure", type="confirmation", message="Confirmation required"),
)


class PatternLoader:
    """Load extra prompt patterns from YAML files in the configured directories."""

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        paths = [Path(path) for path in (search_paths or [])]
        self._search_paths: list[Path] = [path for path in paths if path.exists()]

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def load_all(self) -> list[PromptPattern]:
        """Load patterns from all search paths, in path then file name order.

        A search path may be a directory of ``*.yml``/``*.yaml`` files or a
        single YAML file. Each document is a list of pattern mappings.
        """

        patterns: list[PromptPattern] = []
        errors: list[str] = []

        for base in self._search_paths:
            files = (
                [base]
                if base.is_file()
                else sorted(base.glob("*.yml")) + sorted(base.glob("*.yaml"))
            )
            for path in files:
                try:
                    document = yaml.safe_load(path.read_text(encoding="utf-8"))
                except yaml.YAMLError as exc:  # pragma: no cover - library type
                    errors.append(f"Failed to parse YAML in {path}: {exc}")
                    continue

                if document is None:
                    continue
                if not isinstance(document, list):
                    errors.append(f"Pattern file {path} must contain a list of patterns")
                    continue

                for index, entry in enumerate(document):
                    try:
                        patterns.append(PromptPattern.model_validate(entry))
                    except ValidationError as exc:
                        errors.append(f"Pattern validation error in {path} entry {index}: {exc}")

        if errors:
            raise PatternLoadError("; ".join(errors))

        return patterns


__all__ = ["DEFAULT_PATTERNS", "PatternLoadError", "PatternLoader", "PromptPattern"]
