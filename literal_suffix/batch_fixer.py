import os
import logging
from typing import Callable, List, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def apply_edits(content: bytes, edits: List[Dict]) -> Tuple[bytes, int, int]:
    """
    Apply {start_byte, end_byte, text} edits to a byte string.

    Edits are applied bottom-up so earlier offsets stay valid.  Edits that
    fall outside the content or overlap an already applied edit are skipped.
    Returns (new_content, applied_count, skipped_count).
    """
    new_content = bytearray(content)
    sorted_edits = sorted(edits, key=lambda e: e["start_byte"], reverse=True)

    applied = 0
    skipped = 0
    last_start = float('inf')
    for edit in sorted_edits:
        start = edit["start_byte"]
        end = edit["end_byte"]
        text = edit["text"].encode("utf-8")

        if start < 0 or end > len(new_content) or start > end:
            logger.warning("Edit out of bounds at offset %d-%d. Skipping edit.", start, end)
            skipped += 1
            continue

        # Going in reverse, this edit must end before the lower-offset
        # edit we applied last
        if end > last_start:
            logger.warning("Overlap detected at offset %d-%d. Skipping edit.", start, end)
            skipped += 1
            continue

        new_content[start:end] = text
        last_start = start
        applied += 1

    return bytes(new_content), applied, skipped


class BatchFixer:
    """
    Applies multiple text edits to files safely.
    Handles offset shifts by applying edits in reverse order (bottom-up).

    An optional validator receives (original, new_content) and returns an
    error message to keep the file unchanged, or None to write it.
    """

    def __init__(self, validator: Optional[Callable[[bytes, bytes], Optional[str]]] = None):
        self.validator = validator
        self.errors: Dict[str, str] = {}

    def apply_fixes_by_file(self, file_map: Dict[str, List[Dict]], dry_run: bool = False) -> Dict[str, int]:
        """
        file_map: { file_path: [ {start_byte, end_byte, text}, ... ] }
        Returns a summary of changes: {file_path: number_of_fixes_applied}.
        Files left unchanged because of an error are listed in self.errors.
        """
        summary = {}
        self.errors = {}

        for file_path, edits in file_map.items():
            if not edits:
                continue

            try:
                applied, msg = self._apply_to_file(file_path, edits, dry_run)
                summary[file_path] = applied
                logger.info(msg)
            except (OSError, ValueError) as e:
                logger.error("Failed to apply fixes to %s: %s", file_path, e)
                self.errors[file_path] = str(e)
                summary[file_path] = 0

        return summary

    def _apply_to_file(self, file_path: str, edits: List[Dict], dry_run: bool) -> Tuple[int, str]:
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")

        with open(file_path, "rb") as f:
            content = f.read()

        new_content, applied, skipped = apply_edits(content, edits)
        if applied == 0:
            raise ValueError("All edits were skipped (out of bounds or overlapping).")
        if self.validator is not None:
            error = self.validator(content, new_content)
            if error:
                raise ValueError(error)
        note = f" ({skipped} skipped)" if skipped else ""

        if not dry_run:
            with open(file_path, "wb") as f:
                f.write(new_content)
            return applied, f"Applied {applied} fixes to {file_path}{note}"
        return applied, f"[Dry Run] Would apply {applied} fixes to {file_path}{note}"
