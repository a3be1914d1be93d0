# trackmix/parsers/track_info.py
"""Helpers shared by the mkvmerge and ffprobe output parsers."""

_LANG_NAMES = {
    "eng": "English", "spa": "Spanish", "fra": "French", "deu": "German",
    "ita": "Italian", "jpn": "Japanese", "zho": "Chinese", "kor": "Korean",
    "por": "Portuguese", "rus": "Russian", "und": "Undetermined",
    "mul": "Multiple", "hin": "Hindi", "ara": "Arabic", "tha": "Thai",
    "vie": "Vietnamese", "pol": "Polish", "hun": "Hungarian", "ces": "Czech",
    "slk": "Slovak", "hrv": "Croatian", "srp": "Serbian", "bul": "Bulgarian",
    "ron": "Romanian", "ell": "Greek", "tur": "Turkish", "heb": "Hebrew",
    "swe": "Swedish", "nor": "Norwegian", "dan": "Danish", "fin": "Finnish",
    "nld": "Dutch", "cat": "Catalan", "ukr": "Ukrainian", "ind": "Indonesian",
    "msa": "Malay", "fil": "Filipino", "cmn": "Mandarin", "yue": "Cantonese",
    "zxx": "No linguistic content",
}

# ISO 639-2/B codes used by older Matroska files
_BIBLIOGRAPHIC = {
    "chi": "zho", "ger": "deu", "fre": "fra", "cze": "ces", "dut": "nld",
    "gre": "ell", "rum": "ron", "slo": "slk", "may": "msa",
}

# ISO 639-1
_TWO_LETTER = {
    "en": "eng", "es": "spa", "fr": "fra", "de": "deu", "it": "ita",
    "ja": "jpn", "zh": "zho", "ko": "kor", "pt": "por", "ru": "rus",
    "hi": "hin", "ar": "ara", "th": "tha", "vi": "vie", "pl": "pol",
    "hu": "hun", "cs": "ces", "sk": "slk", "hr": "hrv", "sr": "srp",
    "bg": "bul", "ro": "ron", "el": "ell", "tr": "tur", "he": "heb",
    "sv": "swe", "no": "nor", "nb": "nor", "da": "dan", "fi": "fin",
    "nl": "nld", "ca": "cat", "uk": "ukr", "id": "ind", "ms": "msa",
}

_HANS = ("zh-hans", "zh-cn", "zh-sg", "chs")
_HANT = ("zh-hant", "zh-tw", "zh-hk", "zh-mo", "cht")


def pretty_lang_from_code(code: str | None) -> str | None:
    """Human-readable language name for an ISO 639 / BCP-47 tag, None if unknown."""
    if not code or not code.strip():
        return None
    c = code.strip().lower().replace("_", "-")
    if c.startswith(_HANS):
        return "Chinese (Simplified)"
    if c.startswith(_HANT):
        return "Chinese (Traditional)"
    primary = c.split("-", 1)[0]
    primary = _TWO_LETTER.get(primary, _BIBLIOGRAPHIC.get(primary, primary))
    return _LANG_NAMES.get(primary)


def format_bytes(n: int | None) -> str | None:
    if n is None or n < 0:
        return None
    units = ["B", "KB", "MB", "GB", "TB"]
    size, idx = float(n), 0
    while size >= 1024 and idx < len(units) - 1:
        size /= 1024
        idx += 1
    if idx == 0:
        return f"{n} B"
    return f"{size:.2f} {units[idx]}"


def to_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def flag_from(value) -> bool | None:
    """Container flags: absent stays None, never silently False."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if (i := to_int(value)) is not None:
        return i != 0
    return None


def clean(value) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None
