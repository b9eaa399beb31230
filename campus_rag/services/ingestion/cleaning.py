import re
import unicodedata

_hyphen_break_re = re.compile(r"(\w)-\n(\w)")
_blank_lines_re = re.compile(r"\n\s*\n")
_spaces_re = re.compile(r"[ \t\f\v]+")


def normalize_text(text: str) -> str:
    if not text:
        return ""
    text = unicodedata.normalize("NFKC", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")

    # PDF line-wrap hyphenation: "regis-\ntration" -> "registration"
    text = _hyphen_break_re.sub(r"\1\2", text)

    text = _blank_lines_re.sub("\n", text)
    text = _spaces_re.sub(" ", text)
    return text.strip()


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())
