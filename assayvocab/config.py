"""Configuration for loading the vocabulary context.

Paths can come from ``ASSAYVOCAB_*`` environment variables (a ``.env`` file is
honored) and be overridden by command-line arguments.
"""

from __future__ import annotations

import os
from argparse import Namespace
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# =============================================================================
# Environment variables
# =============================================================================

ENV_ONTOLOGY = "ASSAYVOCAB_ONTOLOGY"
"""Ontology snapshot file (.bin or .bin.gz)."""

ENV_TEMPLATES = "ASSAYVOCAB_TEMPLATES"
"""Directory of template JSON files."""

ENV_DEFAULT_TEMPLATE = "ASSAYVOCAB_DEFAULT_TEMPLATE"
"""Template URI used when an assay does not name one."""

ENV_AXIOMS = "ASSAYVOCAB_AXIOMS"
"""Directory of axiom rule JSON files."""

ENV_PROVISIONAL = "ASSAYVOCAB_PROVISIONAL"
"""Provisional terms file (JSON array or JSONL)."""


def _env_path(name: str) -> Path | None:
    value = os.environ.get(name)
    return Path(value) if value else None


@dataclass
class VocabConfig:
    """Where to find the ontology, templates, axioms and provisional terms."""

    ontology_path: Path | None = None
    """Ontology snapshot file."""

    templates_dir: Path | None = None
    """Directory of template JSON files."""

    default_template: str | None = None
    """URI of the template to use when none is given."""

    axioms_dir: Path | None = None
    """Directory of axiom rule files, merged in name order."""

    provisional_path: Path | None = None
    """Provisional terms file."""

    verbose: bool = False
    """Enable verbose output."""

    log_file: Path | None = None
    """Optional file to write logs to."""

    @classmethod
    def from_env(cls, dotenv: bool = True) -> VocabConfig:
        """Build config from environment variables.

        Args:
            dotenv: If True, load a .env file first

        Returns:
            VocabConfig instance
        """
        if dotenv:
            load_dotenv()
        return cls(
            ontology_path=_env_path(ENV_ONTOLOGY),
            templates_dir=_env_path(ENV_TEMPLATES),
            default_template=os.environ.get(ENV_DEFAULT_TEMPLATE) or None,
            axioms_dir=_env_path(ENV_AXIOMS),
            provisional_path=_env_path(ENV_PROVISIONAL),
        )

    @classmethod
    def from_args(cls, args: Namespace, base: VocabConfig | None = None) -> VocabConfig:
        """Overlay command-line arguments onto a base config (the environment by default).

        Args:
            args: Parsed command-line arguments
            base: Config whose values are kept where no argument was given

        Returns:
            VocabConfig instance
        """
        base = base if base is not None else cls.from_env()
        return cls(
            ontology_path=getattr(args, "ontology", None) or base.ontology_path,
            templates_dir=getattr(args, "templates", None) or base.templates_dir,
            default_template=getattr(args, "default_template", None) or base.default_template,
            axioms_dir=getattr(args, "axioms", None) or base.axioms_dir,
            provisional_path=getattr(args, "provisional", None) or base.provisional_path,
            verbose=getattr(args, "verbose", False) or base.verbose,
            log_file=getattr(args, "log_file", None) or base.log_file,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "ontology_path": str(self.ontology_path) if self.ontology_path else None,
            "templates_dir": str(self.templates_dir) if self.templates_dir else None,
            "default_template": self.default_template,
            "axioms_dir": str(self.axioms_dir) if self.axioms_dir else None,
            "provisional_path": str(self.provisional_path) if self.provisional_path else None,
            "verbose": self.verbose,
            "log_file": str(self.log_file) if self.log_file else None,
        }

    def with_paths(self, **kwargs: Any) -> VocabConfig:
        """Create a copy with some paths replaced.

        Args:
            **kwargs: Fields to override (ontology_path, templates_dir, axioms_dir, ...)

        Returns:
            New VocabConfig
        """
        converted = {k: Path(v) if k.endswith(("_path", "_dir")) and v is not None else v for k, v in kwargs.items()}
        return replace(self, **converted)
