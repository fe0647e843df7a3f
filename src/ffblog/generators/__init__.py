"""
File generators behind the ``make:*`` commands.

User input is sanitized before it reaches the file system:

- class names become ``StudlyCase`` segments of ``[A-Za-z0-9_]`` that do
  not start with a digit (``admin/report`` -> ``Admin``, ``Report``);
- file names become ``snake_case`` and must contain a letter;
- target paths must stay inside the generator's base directory.

Existing files are never overwritten.
"""

import logging
import os
import re
from string import Template

from ..exceptions import GeneratorError
from ..paths import BASE_DIR, STUBS_DIR
from ..text import snake

logger = logging.getLogger(__name__)

# Where each kind of file is written, relative to the base directory
TARGET_DIRS = {
    "controller": "app",
    "model": os.path.join("app", "models"),
    "migration": os.path.join("migrations", "versions"),
    "seeder": "seeders",
}

_CREATE_TABLE_RE = re.compile(r"^create_([a-z0-9_]+?)_table$")
_MIGRATION_NUMBER_RE = re.compile(r"^(\d+)_")


# -------------------------------
# INPUT SANITIZING
# -------------------------------
def sanitize_class_name(name):
    """Split ``name`` into sanitized class-name segments.

    Slashes and backslashes separate namespace segments. Characters outside
    ``[A-Za-z0-9_]`` are removed and each segment gets an upper-case first
    letter.

    :param name: Raw name from the command line.
    :type name: str
    :returns: Non-empty list of segments; the last one is the class name.
    :rtype: list[str]
    :raises GeneratorError: If the name is empty or a segment is empty
        after cleaning or starts with a digit.
    """
    raw = str(name or "").strip().replace("\\", "/")
    parts = [part.strip() for part in raw.split("/") if part.strip()]
    if not parts:
        raise GeneratorError("A class name is required.")

    segments = []
    for part in parts:
        clean = re.sub(r"[^A-Za-z0-9_]", "", part)
        if not clean or clean[0].isdigit():
            raise GeneratorError(f"Invalid class name: {name!r}")
        segments.append(clean[0].upper() + clean[1:])
    return segments


def sanitize_file_name(name):
    """Return ``name`` as a ``snake_case`` file slug.

    :raises GeneratorError: If nothing usable (no letter) remains.
    """
    value = str(name or "").strip().lower()
    value = re.sub(r"[\s-]+", "_", value)
    value = re.sub(r"[^a-z0-9_]", "", value)
    value = re.sub(r"_+", "_", value).strip("_")
    if not value or not re.search(r"[a-z]", value):
        raise GeneratorError(f"Invalid file name: {name!r}")
    return value


def normalize_relative_path(path):
    """Normalize a relative path, refusing anything that climbs out of it.

    :raises GeneratorError: For absolute paths or ``..`` above the start.
    """
    raw = str(path or "").replace("\\", "/")
    if raw.startswith("/") or re.match(r"^[A-Za-z]:", raw):
        raise GeneratorError(f"Path must be relative: {path!r}")

    parts = []
    for part in raw.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                raise GeneratorError(f"Path escapes the base directory: {path!r}")
            parts.pop()
            continue
        parts.append(part)
    if not parts:
        raise GeneratorError("Path is empty.")
    return "/".join(parts)


# -------------------------------
# GENERATOR
# -------------------------------
class Generator:
    """Render stub files into the project.

    :param base_dir: Directory generated files are written under.
    :type base_dir: str
    :param stubs_dir: Directory holding the ``*.txt`` stubs.
    :type stubs_dir: str
    """

    def __init__(self, base_dir=BASE_DIR, stubs_dir=STUBS_DIR):
        self.base_dir = os.path.realpath(base_dir)
        self.stubs_dir = stubs_dir

    def resolve(self, kind, relative):
        """Absolute path for ``relative`` inside the target dir for ``kind``."""
        relative = normalize_relative_path(os.path.join(TARGET_DIRS[kind], relative))
        full = os.path.realpath(os.path.join(self.base_dir, relative))
        if not full.startswith(self.base_dir + os.sep):
            raise GeneratorError(f"Path escapes the base directory: {relative!r}")
        return full

    def render_stub(self, stub, **values):
        with open(os.path.join(self.stubs_dir, f"{stub}.txt"), "r", encoding="utf-8") as f:
            return Template(f.read()).substitute(values)

    def write(self, path, content):
        """Create ``path`` with ``content``; refuses to overwrite.

        :raises GeneratorError: If the file already exists.
        """
        if os.path.exists(path):
            raise GeneratorError(f"File already exists: {path}")
        os.makedirs(os.path.dirname(path), exist_ok=True)
        # "x" mode fails instead of truncating if the file appeared meanwhile
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError as exc:
            raise GeneratorError(f"File already exists: {path}") from exc
        logger.info("Generated file", extra={"context": {"path": path}})
        return path

    @staticmethod
    def _module_path(segments):
        return "/".join(snake(segment) for segment in segments) + ".py"

    # -------------------------------
    # make:* TARGETS
    # -------------------------------
    def make_controller(self, name):
        segments = sanitize_class_name(name)
        class_name = segments[-1]
        base = snake(re.sub(r"Controller$", "", class_name)) or snake(class_name)
        content = self.render_stub(
            "controller",
            class_name=class_name,
            blueprint=base,
            url_prefix=base.replace("_", "-"),
            view=base,
        )
        return self.write(self.resolve("controller", self._module_path(segments)), content)

    def make_model(self, name, table=None):
        segments = sanitize_class_name(name)
        class_name = segments[-1]
        table = sanitize_file_name(table) if table else f"{snake(class_name)}s"
        content = self.render_stub("model", class_name=class_name, table=table)
        return self.write(self.resolve("model", self._module_path(segments)), content)

    def next_migration_number(self):
        directory = os.path.join(self.base_dir, TARGET_DIRS["migration"])
        numbers = [0]
        if os.path.isdir(directory):
            for filename in os.listdir(directory):
                match = _MIGRATION_NUMBER_RE.match(filename)
                if match:
                    numbers.append(int(match.group(1)))
        return max(numbers) + 1

    def make_migration(self, name):
        slug = sanitize_file_name(name)
        filename = f"{self.next_migration_number():03d}_{slug}.py"
        description = slug.replace("_", " ").capitalize() + "."
        match = _CREATE_TABLE_RE.match(slug)
        if match:
            content = self.render_stub("migration_create", description=description, table=match.group(1))
        else:
            content = self.render_stub("migration", description=description)
        return self.write(self.resolve("migration", filename), content)

    def make_seeder(self, name):
        segments = sanitize_class_name(name)
        class_name = segments[-1]
        table = snake(re.sub(r"Seeder$", "", class_name)) or snake(class_name)
        content = self.render_stub("seeder", class_name=class_name, table=table)
        return self.write(self.resolve("seeder", self._module_path(segments)), content)
