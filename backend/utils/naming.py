"""
naming.py — Document file naming conventions.

Client folders:  First_Last_<client_id>
Document files:  First_Last_<document_type>.<ext>
Example: Amina_Benali_diploma.pdf
"""

import re


def _clean(part: str) -> str:
    part = re.sub(r"[^\w\s-]", "", part or "").strip()
    return re.sub(r"\s+", "_", part)


def make_client_folder(first_name: str, last_name: str, client_id: str) -> str:
    """e.g. "Amina_Benali_3f2a…" — one folder per client."""
    return f"{_clean(first_name)}_{_clean(last_name)}_{client_id}"


def make_document_filename(first_name: str, last_name: str, document_type: str, extension: str) -> str:
    """
    Generate the stored filename for a client document.

    One file per document type: uploading the same type again produces the
    same name, so the newer file replaces the older one.

    Returns:
        e.g. "Amina_Benali_diploma.pdf"
    """
    clean_type = re.sub(r"[^\w-]", "", document_type or "").strip() or "document"
    ext = extension.lstrip(".").lower()
    return f"{_clean(first_name)}_{_clean(last_name)}_{clean_type}.{ext}"


def file_extension(filename: str) -> str:
    """Lowercased extension without the dot ("" if none)."""
    if "." not in (filename or ""):
        return ""
    return filename.rsplit(".", 1)[1].lower()
