"""
View name resolution and rendering.

Controllers refer to templates by view name (``"admin.posts.index"`` or
``"admin/posts/index"``). :func:`resolve_view` turns that into a template
path under the template folder and refuses anything that would step
outside it.
"""

import os
import re

from flask import current_app, render_template

from .exceptions import ViewNotFoundError
from .paths import TEMPLATES_DIR

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# Data merged into every render() call; per-call context wins
_shared = {}


def normalize_view_name(name):
    """Return the slash-separated template path for view ``name``.

    Dots and backslashes are treated as separators; a trailing ``.html``
    is allowed. Empty segments and ``.`` are dropped, ``..`` pops the
    previous segment.

    :raises ViewNotFoundError: If the name is empty, climbs above the
        template root, or has a segment outside ``[A-Za-z0-9_-]``.
    """
    raw = str(name or "").strip()
    if raw.endswith(".html"):
        raw = raw[: -len(".html")]
    raw = raw.replace("\\", "/")

    segments = []
    for part in raw.split("/"):
        # Dots separate view segments, except in the ".." parent marker
        pieces = [part] if part == ".." else part.split(".")
        for segment in pieces:
            if segment in ("", "."):
                continue
            if segment == "..":
                if not segments:
                    raise ViewNotFoundError(f"Invalid view name: {name}")
                segments.pop()
                continue
            if not _SEGMENT_RE.match(segment):
                raise ViewNotFoundError(f"Invalid view name: {name}")
            segments.append(segment)

    if not segments:
        raise ViewNotFoundError(f"Invalid view name: {name}")
    return "/".join(segments) + ".html"


def resolve_view(name, template_dir=None):
    """Return the template path for ``name`` after checking the file exists.

    :raises ViewNotFoundError: If the name is invalid or no template exists.
    """
    relative = normalize_view_name(name)
    base = os.path.realpath(template_dir or TEMPLATES_DIR)
    full = os.path.realpath(os.path.join(base, relative))
    if not full.startswith(base + os.sep) or not os.path.isfile(full):
        raise ViewNotFoundError(f"View file not found: {name}")
    return relative


def share(key, value):
    """Make ``key`` available to every view rendered through :func:`render`."""
    _shared[key] = value


def render(view, **context):
    """Render view ``view`` with shared data plus ``context``."""
    template = resolve_view(view, os.path.join(current_app.root_path, current_app.template_folder))
    data = dict(_shared)
    data.update(context)
    return render_template(template, **data)
