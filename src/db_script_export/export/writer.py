"""Script output: files (single, per object, tree) or a stream, plus build order.

File layout per output type, relative to the output directory:
- file:  ``<object or database>.sql``, every script appended
- files: ``<Type>.<name>.sql``
- tree:  ``<Type>/<name>.sql`` (the database script is ``Database.sql``)

Every file written in files/tree mode is recorded in the build order,
which ``write_order_file()`` saves as one filename per line.

Usage:
    writer = ScriptArtifactWriter(config)
    writer.write(ScriptArtifact("Table", "[Orders]", "CREATE TABLE ...\\nGO\\n"))
    writer.write_order_file()
"""

import logging
import re
import sys
from pathlib import Path, PurePosixPath
from typing import TextIO

from db_script_export.config.models import ExportConfig, OutputType
from db_script_export.schema.models import ScriptArtifact

logger = logging.getLogger(__name__)

_SEPARATOR_CHARS_RE = re.compile(r"[ \[\]]")
_INVALID_FILENAME_CHARS_RE = re.compile(r'["<>|:*?\\/\x00-\x1f]')


def clean_filename(name: str) -> str:
    """Make an object name safe to use as a filename.

    Example:
        >>> clean_filename("[dbo].[Order Details]")
        'dbo.Order.Details'
    """
    name = _SEPARATOR_CHARS_RE.sub(".", name)
    name = _INVALID_FILENAME_CHARS_RE.sub(".", name)
    while ".." in name:
        name = name.replace("..", ".")
    return name.strip(".")


class ScriptArtifactWriter:
    """Writes script artifacts according to the configured output type.

    Args:
        config: Export config (output type, directory, order filename)
        stream: Output stream for stdout mode (default: ``sys.stdout``)
    """

    def __init__(self, config: ExportConfig, stream: TextIO | None = None):
        self._config = config
        self._stream = stream
        self.build_order: list[str] = []

    @property
    def output_directory(self) -> Path:
        if self._config.output_directory:
            return Path(self._config.output_directory)
        return Path.cwd()

    def artifact_path(self, artifact: ScriptArtifact) -> PurePosixPath:
        """Path of *artifact*'s file, relative to the output directory.

        Unnamed objects are named after their type, numbered from the
        second one on so they don't overwrite each other.
        """
        output_type = self._config.output_type
        if output_type is OutputType.FILE:
            name = self._config.object_name or self._config.database or ""
            return PurePosixPath(clean_filename(name) + ".sql")
        if output_type is OutputType.TREE and artifact.object_type == "Database":
            return PurePosixPath("Database.sql")

        name = clean_filename(artifact.object_name or "")
        if name:
            return self._typed_path(artifact.object_type, name)

        path = self._typed_path(artifact.object_type, artifact.object_type)
        number = 1
        while path.as_posix() in self.build_order:
            number += 1
            path = self._typed_path(artifact.object_type, f"{artifact.object_type}.{number}")
        return path

    def _typed_path(self, object_type: str, name: str) -> PurePosixPath:
        if self._config.output_type is OutputType.TREE:
            return PurePosixPath(object_type, f"{name}.sql")
        return PurePosixPath(f"{object_type}.{name}.sql")

    def write(self, artifact: ScriptArtifact) -> None:
        """Write one artifact."""
        logger.debug(f"{artifact.object_type}: {artifact.object_name}")

        if self._config.output_type is OutputType.STDOUT:
            stream = self._stream if self._stream is not None else sys.stdout
            stream.write(artifact.script_text)
            return

        relative = self.artifact_path(artifact)
        if self._config.output_type is not OutputType.FILE:
            self.build_order.append(relative.as_posix())

        path = self.output_directory / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            logger.debug(f"Creating file: {path}")

        mode = "a" if self._config.output_type is OutputType.FILE else "w"
        with open(path, mode, encoding="utf-8") as f:
            f.write(artifact.script_text)

    def write_order_file(self) -> Path | None:
        """Save the build order; returns its path, or None if nothing was recorded."""
        if not self.build_order:
            return None

        path = self.output_directory / self._config.order_filename
        logger.debug(f"Creating order file: {path}")
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            for filename in self.build_order:
                f.write(filename + "\n")
        return path
