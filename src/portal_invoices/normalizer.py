from __future__ import annotations

import csv
import html as _html
import io
import logging
import re
from pathlib import Path
from typing import Callable, Iterable, Optional

import openpyxl
import xlrd
from pypdf import PdfReader


logger = logging.getLogger(__name__)

SNIFF_BYTES = 512
MAX_HTML_TEXT = 5000
# The portal is Belarusian: legacy text exports are Windows-1251.
LEGACY_ENCODING = "cp1251"

_UTF8_BOM = b"\xef\xbb\xbf"
_ZIP_MAGIC = b"PK\x03\x04"


def strip_html_to_text(s: str) -> str:
    # Remove style/script blocks and comments
    s = re.sub(r"(?is)<style[^>]*>.*?</style>", " ", s)
    s = re.sub(r"(?is)<script[^>]*>.*?</script>", " ", s)
    s = re.sub(r"(?is)<!--.*?-->", " ", s)
    # Remove tags
    s = re.sub(r"(?is)<[^>]+>", " ", s)
    s = _html.unescape(s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def _sniff_prefix(head: bytes) -> bytes:
    if head.startswith(_UTF8_BOM):
        head = head[len(_UTF8_BOM):]
    return head.lstrip().lower()


def looks_like_html(head: bytes) -> bool:
    """
    True for `<!DOCTYPE ...>`, `<!-- ... -->` or `<html ...>` openers (any case).

    Portals answer expired sessions and server errors with an HTML page under the requested file's name.
    """
    prefix = _sniff_prefix(head)
    return prefix.startswith(b"<!") or prefix.startswith(b"<html")


def _read_html(path: Path, data: bytes) -> str:
    text = strip_html_to_text(data.decode("utf-8", errors="replace"))
    what = path.suffix.lower() or "a file"
    return f"[Downloaded HTML instead of {what}]\n\n{text[:MAX_HTML_TEXT]}"


def _read_pdf(path: Path, data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages: list[str] = []
    for i, page in enumerate(reader.pages):
        try:
            pages.append(page.extract_text() or "")
        except Exception:
            logger.warning("Failed to extract text from page %d of %s", i + 1, path, exc_info=True)
    return "\n".join(pages).strip()


def _rows_to_csv(rows: Iterable[Iterable[object]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    for row in rows:
        writer.writerow(["" if v is None else v for v in row])
    return buf.getvalue().rstrip("\n")


def _sheet_block(name: str, body: str) -> str:
    return f"=== Sheet: {name} ===\n{body}"


def _read_xlsx(data: bytes) -> str:
    wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        blocks = [_sheet_block(ws.title, _rows_to_csv(ws.iter_rows(values_only=True))) for ws in wb.worksheets]
    finally:
        wb.close()
    return "\n\n".join(blocks)


def _read_xls(data: bytes) -> str:
    book = xlrd.open_workbook(file_contents=data)
    blocks = []
    for sheet in book.sheets():
        rows = (sheet.row_values(r) for r in range(sheet.nrows))
        blocks.append(_sheet_block(sheet.name, _rows_to_csv(rows)))
    return "\n\n".join(blocks)


def _read_spreadsheet(path: Path, data: bytes) -> str:
    # Servers often label OOXML workbooks `.xls`; the zip signature decides, not the name.
    if data.startswith(_ZIP_MAGIC):
        return _read_xlsx(data)
    return _read_xls(data)


def _read_delimited(path: Path, data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _read_plain_text(path: Path, data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.info("%s is not valid UTF-8; decoding as %s", path.name, LEGACY_ENCODING)
        return data.decode(LEGACY_ENCODING, errors="replace")


def _read_unknown(path: Path, data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


Handler = Callable[[Path, bytes], str]

# Content signatures win over extensions. Add new (predicate, handler) pairs here.
SIGNATURE_HANDLERS: list[tuple[Callable[[bytes], bool], Handler]] = [
    (looks_like_html, _read_html),
]

EXTENSION_HANDLERS: dict[str, Handler] = {
    ".pdf": _read_pdf,
    ".xlsx": _read_spreadsheet,
    ".xls": _read_spreadsheet,
    ".csv": _read_delimited,
    ".txt": _read_plain_text,
}


def select_handler(path: Path, head: bytes) -> Handler:
    for predicate, handler in SIGNATURE_HANDLERS:
        if predicate(head):
            return handler
    return EXTENSION_HANDLERS.get(path.suffix.lower(), _read_unknown)


def extract_text(path: Path | str, *, data: Optional[bytes] = None) -> str:
    """
    Return human-readable text for a retrieved file.

    The file type is decided by content first (an HTML page saved as `.pdf` yields annotated page
    text) and by extension otherwise.
    """
    p = Path(path)
    if data is None:
        if not p.is_file():
            raise FileNotFoundError(f"File not found: {p}. Run `list-files` to see downloaded documents.")
        data = p.read_bytes()

    handler = select_handler(p, data[:SNIFF_BYTES])
    logger.debug("Extracting %s with %s", p.name, handler.__name__)
    return handler(p, data)
