"""Load and save projects as JSON files."""

import logging
from pathlib import Path

from pydantic import ValidationError

from .exceptions import ProjectFileError
from .models import Project

logger = logging.getLogger(__name__)


def load_project(path: Path) -> Project:
    """Read a project file.

    Raises:
        ProjectFileError: If the file is missing, unreadable or malformed.

    """
    try:
        with path.open("r", encoding="utf-8") as f:
            return Project.model_validate_json(f.read())
    except OSError as e:
        msg = f"Cannot read project file {path}: {e}"
        raise ProjectFileError(msg) from e
    except ValidationError as e:
        msg = f"Invalid project file {path}: {e}"
        raise ProjectFileError(msg) from e


def save_project(project: Project, path: Path) -> Path:
    """Write ``project`` to ``path``, updating its modification time."""
    project.touch()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            f.write(project.model_dump_json(indent=2))
    except OSError as e:
        msg = f"Cannot write project file {path}: {e}"
        raise ProjectFileError(msg) from e
    logger.debug("Saved project %s to %s", project.name, path)
    return path
