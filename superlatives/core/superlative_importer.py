"""Utilities for importing superlatives from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    TITLE: Superlative title
    ORDER: integer   (optional, defaults to the block position counting from 1)
    NOMINEE: Name | image reference   (one line per nominee, image optional)

Example:

    TITLE: Most Likely to Become a Billionaire
    ORDER: 1
    NOMINEE: Anmol | /images/anmol.png
    NOMINEE: Datta | /images/datta.png
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from superlatives.core.models import Nominee, Superlative


class SuperlativeImportError(Exception):
    """Raised when a superlatives file cannot be parsed."""


@dataclass(slots=True)
class ImportedSuperlatives:
    """Container for imported superlatives and where they came from."""

    source_path: Path
    questions: list[Superlative]


def load_superlatives_from_file(file_path: Path) -> ImportedSuperlatives:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_superlatives_text(text)
    if not questions:
        raise SuperlativeImportError("Superlatives file did not contain any superlatives.")
    return ImportedSuperlatives(source_path=file_path, questions=questions)


def parse_superlatives_text(text: str) -> list[Superlative]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block))
                current_block = []
            continue
        if stripped.startswith("#"):
            continue
        current_block.append(stripped)
    if current_block:
        blocks.append("\n".join(current_block))

    return [_parse_block(block, position) for position, block in enumerate(blocks, start=1)]


def _parse_block(block: str, position: int) -> Superlative:
    title: str | None = None
    order = position
    nominees: list[Nominee] = []

    for line in block.splitlines():
        marker, _, value = line.partition(":")
        marker = marker.strip().upper()
        value = value.strip()

        if marker == "TITLE":
            title = value
        elif marker == "ORDER":
            try:
                order = int(value)
            except ValueError as exc:
                raise SuperlativeImportError("ORDER must be an integer.") from exc
        elif marker == "NOMINEE":
            name, _, image_ref = value.partition("|")
            if not name.strip():
                raise SuperlativeImportError("NOMINEE must include a name.")
            nominees.append(Nominee(name=name.strip(), image_ref=image_ref.strip()))
        else:
            raise SuperlativeImportError(f"Encountered text outside of a known section: '{line}'.")

    if not title:
        raise SuperlativeImportError("Superlative title missing (TITLE: ...)")
    names = [nominee.name for nominee in nominees]
    if len(set(names)) != len(names):
        raise SuperlativeImportError(f"Duplicate nominee names in '{title}'.")

    return Superlative(
        id="",  # assigned by the repository when loaded
        title=title,
        order=order,
        nominees=nominees,
    )


def save_superlatives_to_file(file_path: Path, questions: list[Superlative]) -> None:
    """Persist the provided superlatives to disk in the import format."""

    if not questions:
        raise ValueError("Cannot export an empty set of superlatives.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    blocks = [_serialize_question(question) for question in questions]
    file_path.write_text("\n\n---\n\n".join(blocks) + "\n", encoding="utf-8")


def _serialize_question(question: Superlative) -> str:
    lines = [f"TITLE: {question.title}", f"ORDER: {question.order}"]
    for nominee in question.nominees:
        if nominee.image_ref:
            lines.append(f"NOMINEE: {nominee.name} | {nominee.image_ref}")
        else:
            lines.append(f"NOMINEE: {nominee.name}")
    return "\n".join(lines)
