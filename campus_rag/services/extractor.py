from io import BytesIO

import requests
from bs4 import BeautifulSoup
from docx import Document as DocxDocument
from pypdf import PdfReader

from campus_rag.core.errors import GatewayError
from campus_rag.services.ingestion.cleaning import collapse_whitespace, normalize_text

NOISE_TAGS = ["script", "style", "nav", "header", "footer", "noscript"]


class UnsupportedFileType(ValueError):
    pass


def extract_pdf(file_bytes: bytes) -> str:
    """
    Full text of all pages. Chunks span page breaks, so no page numbers are kept.
    """
    reader = PdfReader(BytesIO(file_bytes))
    return normalize_text("\n".join(page.extract_text() or "" for page in reader.pages))


def extract_docx(file_bytes: bytes) -> str:
    doc = DocxDocument(BytesIO(file_bytes))
    return normalize_text("\n".join(p.text for p in doc.paragraphs if p.text.strip()))


def extract_txt(file_bytes: bytes) -> str:
    return normalize_text(file_bytes.decode("utf-8", errors="ignore"))


def extract_file(filename: str, data: bytes, content_type: str | None = None) -> str:
    lower = (filename or "").lower()
    if lower.endswith(".pdf") or content_type == "application/pdf":
        return extract_pdf(data)
    if lower.endswith(".docx"):
        return extract_docx(data)
    if lower.endswith((".txt", ".md")) or content_type == "text/plain":
        return extract_txt(data)
    raise UnsupportedFileType(f"unsupported file type: {filename}")


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(NOISE_TAGS):
        tag.decompose()
    body = soup.body or soup
    return collapse_whitespace(body.get_text(" "))


def fetch_url_text(url: str, timeout: float = 30.0, session: requests.Session | None = None) -> str:
    http = session or requests
    try:
        r = http.get(url, timeout=timeout)
        r.raise_for_status()
    except requests.RequestException as exc:
        raise GatewayError("fetch", f"failed to fetch {url}: {exc}") from exc
    return html_to_text(r.text)
