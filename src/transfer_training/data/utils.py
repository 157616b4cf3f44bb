"""Utility functions for the data pipeline."""

from pathlib import Path

from transfer_training.errors import EnumerationError


def get_label_images(root: Path, extensions: tuple[str, ...]) -> list[Path]:
    """Find image files one level below the label directories of ``root``.

    Only ``root/<label>/<file>`` matches: files placed directly in ``root`` and
    anything nested deeper are ignored.

    Args:
        root: Project directory holding one sub-directory per label.
        extensions: Tuple of lowercase extensions including dot
            (e.g., (".jpg", ".png")).

    Returns:
        Matching paths in file-system enumeration order.  The order is *not*
        sorted, so it may differ between machines.

    Raises:
        EnumerationError: ``root`` is missing, not a directory, or unreadable.
    """
    if not root.is_dir():
        raise EnumerationError(f"Dataset root {root} is not a directory")
    files = []
    try:
        for label_dir in root.iterdir():
            if not label_dir.is_dir():
                continue
            for p in label_dir.iterdir():
                if p.is_file() and p.suffix.lower() in extensions:
                    files.append(p)
    except OSError as e:
        raise EnumerationError(f"Failed to access files under {root}: {e}") from e
    return files
