"""Minimal text-only PDF writer for printable ledger reports (no external deps)."""
from io import BytesIO
from textwrap import wrap

# A4 portrait, points.
PAGE_WIDTH = 595
PAGE_HEIGHT = 842
MARGIN_X = 36
MARGIN_Y = 48
FONT_SIZE = 10
LINE_HEIGHT = 14
MAX_CHARS = 90

APOSTROPHES = {
    "‘": "'",
    "’": "'",
    "ʻ": "'",
    "ʼ": "'",
    "`": "'",
    "−": "-",
    "—": "-",
    " ": " ",
}


def _plain(text: str) -> str:
    for src, dst in APOSTROPHES.items():
        text = text.replace(src, dst)
    return text


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _wrapped(lines):
    for line in lines:
        line = _plain(str(line))
        if not line.strip():
            yield ""
            continue
        yield from wrap(line, MAX_CHARS) or [""]


def _pages(lines):
    per_page = int((PAGE_HEIGHT - 2 * MARGIN_Y) / LINE_HEIGHT)
    page = []
    for line in _wrapped(lines):
        if len(page) == per_page:
            yield page
            page = []
        page.append(line)
    yield page


def _content_stream(page_lines) -> bytes:
    ops = ["BT", f"/F1 {FONT_SIZE} Tf", f"{LINE_HEIGHT} TL", f"{MARGIN_X} {PAGE_HEIGHT - MARGIN_Y} Td"]
    ops.extend(f"({_escape(line)}) '" for line in page_lines)
    ops.append("ET")
    # Courier is a standard Type1 font: anything outside Latin-1 is replaced.
    return "\n".join(ops).encode("latin-1", errors="replace")


def build_pdf(lines) -> bytes:
    """Lay ``lines`` out as monospaced text over as many pages as needed."""
    pages = list(_pages(lines))
    # Object ids: 1 catalog, 2 page tree, 3 font, then (content, page) per page.
    page_ids = [5 + 2 * i for i in range(len(pages))]
    objects = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        2: (
            f"<< /Type /Pages /Kids [{' '.join(f'{pid} 0 R' for pid in page_ids)}] "
            f"/Count {len(pages)} >>"
        ).encode("ascii"),
        3: b"<< /Type /Font /Subtype /Type1 /BaseFont /Courier /Encoding /WinAnsiEncoding >>",
    }
    for index, page_lines in enumerate(pages):
        content_id = 4 + 2 * index
        stream = _content_stream(page_lines)
        objects[content_id] = (
            f"<< /Length {len(stream)} >>\nstream\n".encode("ascii") + stream + b"\nendstream"
        )
        objects[content_id + 1] = (
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 {PAGE_WIDTH} {PAGE_HEIGHT}] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {content_id} 0 R >>"
        ).encode("ascii")

    out = BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = {}
    for obj_id in sorted(objects):
        offsets[obj_id] = out.tell()
        out.write(f"{obj_id} 0 obj\n".encode("ascii"))
        out.write(objects[obj_id])
        out.write(b"\nendobj\n")

    xref_at = out.tell()
    size = len(objects) + 1
    out.write(f"xref\n0 {size}\n".encode("ascii"))
    out.write(b"0000000000 65535 f \n")
    for obj_id in sorted(objects):
        out.write(f"{offsets[obj_id]:010d} 00000 n \n".encode("ascii"))
    out.write(f"trailer\n<< /Size {size} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF".encode("ascii"))
    return out.getvalue()
