"""Text processing utilities"""

import re
from typing import Iterable, List, Optional, Set

DEFAULT_TECHNOLOGY = "Technology Solution"
SLUG_MAX_LENGTH = 15

STOPWORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "from", "is", "are", "was", "were", "be", "been", "will", "would", "should",
    "could", "can", "do", "does", "did", "what", "which", "who", "how", "many", "much",
    "your", "you", "our", "we", "this", "that", "these", "those", "there", "their",
    "need", "needs", "any", "all", "into", "have", "has", "per", "about", "its",
}

# Entity keywords, matched by token prefix in text order
_SLUG_ENTITIES = [
    ("mailbox", ("mailbox",)),
    ("user", ("user", "employee", "seat", "staff")),
    ("admin", ("admin",)),
    ("site", ("site", "office", "branch")),
    ("location", ("location",)),
    ("region", ("region", "geograph")),
    ("db", ("database",)),
    ("data", ("data", "storage", "gb", "tb")),
    ("integ", ("integrat",)),
    ("system", ("system",)),
    ("app", ("applicat", "apps")),
    ("device", ("device", "endpoint", "laptop", "workstation")),
    ("server", ("server",)),
    ("vm", ("vm", "vms", "virtual")),
    ("network", ("network", "firewall", "switch")),
    ("license", ("licen",)),
    ("train", ("train",)),
    ("doc", ("document",)),
    ("test", ("test", "scenario")),
    ("secur", ("secur", "complian")),
    ("cplx", ("complex", "customiz")),
    ("migr", ("migrat",)),
    ("downtime", ("downtime", "outage")),
    ("rollout", ("rollout", "phased", "cutover")),
    ("support", ("support",)),
    ("timeline", ("timeline", "deadline", "schedule")),
]

# Measure phrases, checked in order against the lowered text
_SLUG_MEASURES = [
    ("qty", ("how many", "number of", "count of", "quantity")),
    ("vol", ("how much", "volume", "size", "amount")),
    ("lvl", ("level", "complexity", "degree")),
    ("time", ("how long", "when ", "timeline", "duration")),
    ("type", ("what type", "which type", "kind of", "approach", "strategy")),
    ("req", ("require", "need")),
]


def extract_technology_name(user_request: str) -> str:
    """Derive a short technology label from the user's request"""
    words = (user_request or "").split()[:5]
    name = re.sub(r"[^\w\s-]", "", " ".join(words)).strip()
    return name or DEFAULT_TECHNOLOGY


def extract_key_terms(text: str, stopwords: Optional[Set[str]] = None) -> Set[str]:
    """Lowercased words longer than three characters, stop words removed"""
    if stopwords is None:
        stopwords = STOPWORDS
    words = re.findall(r"[a-z0-9]+", (text or "").lower())
    return {word for word in words if len(word) > 3 and word not in stopwords}


def normalize_factor_key(value: str) -> str:
    """Normalize a scaling factor name to snake_case"""
    key = re.sub(r"[^a-z0-9]+", "_", str(value or "").strip().lower())
    return key.strip("_")


def factor_display_name(factor: str) -> str:
    """user_count -> User Count"""
    return " ".join(part.capitalize() for part in factor.split("_") if part)


def _truncate_slug(slug: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    return slug[:max_length].rstrip("_")


def generate_slug(text: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Derive a short, deterministic slug from a question's text.

    "How many mailboxes need to be migrated?" -> "mailbox_qty"
    """
    lowered = (text or "").lower()
    tokens = re.findall(r"[a-z0-9]+", lowered)

    entity = None
    for token in tokens:
        for name, stems in _SLUG_ENTITIES:
            if any(token.startswith(stem) for stem in stems):
                entity = name
                break
        if entity:
            break

    measure = None
    for name, phrases in _SLUG_MEASURES:
        if any(phrase in lowered for phrase in phrases):
            measure = name
            break

    if entity:
        slug = f"{entity}_{measure}" if measure and measure != entity else entity
        return _truncate_slug(slug, max_length)

    meaningful = [token for token in tokens if token not in STOPWORDS and len(token) > 2]
    if not meaningful:
        return "question"
    return _truncate_slug("_".join(meaningful[:3]), max_length) or "question"


def make_unique_slug(slug: str, used: Set[str], max_length: int = SLUG_MAX_LENGTH) -> str:
    """Append a numeric suffix until the slug is unused; records it in ``used``"""
    candidate = slug
    counter = 2
    while candidate in used:
        suffix = f"_{counter}"
        candidate = _truncate_slug(slug, max_length - len(suffix)) + suffix
        counter += 1
    used.add(candidate)
    return candidate


def dedupe(items: Iterable[str]) -> List[str]:
    """Drop duplicates and empty values, keeping first-appearance order"""
    seen = set()
    result = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result
