import re
import unicodedata
from typing import Iterable, List, Optional


def normalize_text(text: str) -> str:
    """Normalize free text for matching: lowercase, remove accents, collapse whitespace."""
    if not text:
        return ""

    text = text.lower().strip()

    # Remove accents
    text = unicodedata.normalize('NFD', text)
    text = ''.join(char for char in text if unicodedata.category(char) != 'Mn')

    text = re.sub(r'\s+', ' ', text)

    return text.strip()


def slugify(name: str) -> str:
    """Build an organization slug: runs of non-alphanumerics become '-', no leading/trailing '-'."""
    slug = re.sub(r'[^a-z0-9]+', '-', normalize_text(name))
    return slug.strip('-')


def normalize_email(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    return email.strip().lower()


def normalize_skills(skills: Optional[Iterable[str]]) -> List[str]:
    """Trim skill labels and drop blanks and duplicates, keeping first-seen order."""
    result: List[str] = []
    for skill in skills or []:
        cleaned = (skill or "").strip()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result
