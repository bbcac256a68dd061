from io import BytesIO

from pypdf import PdfReader

MAX_PAGES = 50


def extract_text_from_pdf(file_content: bytes) -> str:
    """Extracts text from a PDF (first 50 pages). Empty string when the PDF has no text layer."""
    reader = PdfReader(BytesIO(file_content))
    parts = []
    for i, page in enumerate(reader.pages):
        if i >= MAX_PAGES:
            break
        text = page.extract_text()
        if text:
            parts.append(text.strip())
    return "\n\n".join(parts).strip()
