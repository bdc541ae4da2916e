import re
from typing import List, Optional, Tuple

NOTE_PATTERN = re.compile(r'\[\[notes?:\s*(.*?)\]\]', re.IGNORECASE)
PAGE_NUMBER_PATTERN = re.compile(r'\[\[page\s*number:\s*(\d+)\]\]', re.IGNORECASE)


def parse_notes(text: str) -> Tuple[str, List[str]]:
    """Split ``[[notes: ...]]`` markers out of stage text.

    Returns the text with the markers removed (stripped) and the note
    bodies in order of appearance.
    """
    notes = []

    def _collect(match):
        notes.append(match.group(1).strip())
        return ''

    content = NOTE_PATTERN.sub(_collect, text or '')
    return content.strip(), notes


def extract_page_number(text: str) -> Optional[int]:
    """Printed page number from a ``[[page number: N]]`` marker, if any."""
    match = PAGE_NUMBER_PATTERN.search(text or '')
    return int(match.group(1)) if match else None
