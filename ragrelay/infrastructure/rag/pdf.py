"""PDF text extraction via pypdf."""

import io
import logging
from pathlib import Path

import pypdf
from pypdf.errors import PyPdfError

from ragrelay.domain.errors import ExtractionError

logger = logging.getLogger(__name__)


class PypdfTextExtractor:
    """Extracts page text from PDFs. Pages without text (scans) contribute nothing."""

    def extract(self, path: Path, data: bytes) -> str:
        """Return all page text joined by blank lines. Raises ExtractionError on a broken file."""
        try:
            reader = pypdf.PdfReader(io.BytesIO(data))
            parts: list[str] = []
            for page in reader.pages:
                page_text = page.extract_text() or ""
                if page_text.strip():
                    parts.append(page_text)
        except (PyPdfError, ValueError, KeyError, OSError) as e:
            raise ExtractionError(str(path), str(e)) from e
        logger.debug("Extracted %d pages of text from %s", len(parts), path)
        return "\n\n".join(parts)
