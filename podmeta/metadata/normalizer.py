"""Metadata normalizer — shapes a raw AI response to marketplace limits.

Pure and deterministic: no I/O, no randomness. Tags are lowercased,
trimmed and de-duplicated in first-seen order, then padded from a fixed
placeholder vocabulary and truncated to the marketplace's tag count.
Running the normalizer over its own output changes nothing.
"""

from podmeta.metadata.models import ApiResponse, Marketplace, NormalizedMetadata, get_rules

# Generic design keywords used to reach a fixed tag count.
PLACEHOLDER_TAGS = (
    "design", "graphic", "artwork", "illustration", "art", "gift", "gift idea",
    "present", "creative", "original", "unique", "cool", "funny", "cute",
    "trendy", "vintage", "retro", "modern", "minimalist", "aesthetic",
    "novelty", "statement", "colorful", "hand drawn", "digital art",
    "pop culture", "humor", "birthday", "holiday", "fan art",
)

# Suffix that makes a placeholder unique when it collides with an existing tag.
PAD_QUALIFIER = "style"


def _coerce_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value).strip()
    return ""


def _coerce_tags(value) -> list[str]:
    """Coerce a raw tags field into a list of strings."""
    if isinstance(value, str):
        # Some models return "a, b, c" instead of an array
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        return []
    return [_coerce_text(item) for item in items]


def _dedupe_tags(tags: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.add(tag)
            unique.append(tag)
    return unique


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rstrip()


def _pad_tags(tags: list[str], target: int) -> list[str]:
    """Append placeholder tags until `target` is reached.

    Cycles through PLACEHOLDER_TAGS; a placeholder already present gets
    PAD_QUALIFIER appended, and later cycles are numbered so the loop
    always terminates with unique tags.
    """
    padded = list(tags)
    seen = set(padded)
    i = 0
    while len(padded) < target:
        word = PLACEHOLDER_TAGS[i % len(PLACEHOLDER_TAGS)]
        cycle = i // len(PLACEHOLDER_TAGS)
        candidate = word if cycle == 0 else f"{word} {PAD_QUALIFIER} {cycle + 1}"
        if candidate in seen:
            candidate = f"{candidate} {PAD_QUALIFIER}"
        if candidate not in seen:
            padded.append(candidate)
            seen.add(candidate)
        i += 1
    return padded


def normalize_metadata(raw: ApiResponse, marketplace: Marketplace) -> NormalizedMetadata:
    """Return a NormalizedMetadata satisfying the marketplace's rules."""
    rules = get_rules(marketplace)
    if not isinstance(raw, dict):
        raw = {}

    title = _truncate(_coerce_text(raw.get("title")), rules.title_max)
    description = _truncate(_coerce_text(raw.get("description")), rules.description_max)

    tags = _dedupe_tags(_coerce_tags(raw.get("tags")))
    if rules.tag_floor is not None and len(tags) < rules.tag_floor:
        tags = _pad_tags(tags, rules.tag_floor)
    if rules.tag_ceiling is not None:
        tags = tags[:rules.tag_ceiling]

    # mainTag is passed through as-is; no length limit or overlap check applies.
    main_tag = raw.get("mainTag")
    if not isinstance(main_tag, str):
        main_tag = None

    return NormalizedMetadata(
        title=title,
        description=description,
        tags=tuple(tags),
        main_tag=main_tag,
    )
