"""Writing generated Kong Ingress Controller manifests to a file or standard output."""

from __future__ import annotations

import os
import sys
from typing import Any

from deckkit.kic.builder import marshal_kong_to_kic
from deckkit.kic.common import DEFAULT_CLASS_NAME, KICTarget
from deckkit.kic.serialize import YAML

_FILE_MODE = 0o600
_DIR_MODE = 0o700


def add_ext_to_filename(filename: str, ext: str) -> str:
    """Append ``.ext`` to ``filename`` unless it already has an extension."""
    if os.path.splitext(filename)[1] == "":
        return f"{filename}.{ext}"
    return filename


def _write_private(path: str, text: str) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(text)


def _write_document(prefix: str, document: dict[str, Any] | None) -> None:
    if document is None:
        return
    path = document["path"]
    try:
        os.makedirs(os.path.join(prefix, os.path.dirname(path)), mode=_DIR_MODE, exist_ok=True)
    except OSError as err:
        raise OSError(f"creating document directory: {err}") from err
    try:
        _write_private(os.path.join(prefix, path), document.get("content") or "")
    except OSError as err:
        raise OSError(f"writing document file: {err}") from err


def write_content_to_file(
    content: dict[str, Any],
    filename: str,
    target: KICTarget | str,
    output_format: str = YAML,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Render manifests for ``target`` and write them to ``filename``.

    ``-`` writes to standard output. A filename without an extension gets the
    lower-cased target name as one. Documents of service packages are written
    next to the output file.
    """
    try:
        kic_target = KICTarget(target)
    except ValueError:
        raise ValueError(f"unknown file format: {target}") from None

    text = marshal_kong_to_kic(content, kic_target, output_format, class_name)

    if filename == "-":
        sys.stdout.write(text)
        return

    filename = add_ext_to_filename(filename, kic_target.value.lower())
    prefix = os.path.dirname(filename)
    try:
        _write_private(filename, text)
    except OSError as err:
        raise OSError(f"writing file: {err}") from err

    for package in content.get("service_packages") or []:
        _write_document(prefix, package.get("document"))
        for version in package.get("versions") or []:
            _write_document(prefix, version.get("document"))