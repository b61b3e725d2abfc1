import asyncio

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from shared.errors.errors import ExtractionError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import ExtractedDocument, ExtractedPage


class PdfExtractor:
    """Extracts per-page text from a PDF file with pypdf.

    Page character ranges are laid out back to back as if the pages were
    concatenated without separators.
    """

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()

    async def do_extract(self, file_path: str) -> ExtractedDocument:
        """Extract the text of every page; parsing runs in a worker thread.

        Raises:
            ExtractionError: If the file cannot be read or parsed.
        """
        self.logging.info("Extracting text from PDF: %s", file_path)
        try:
            document = await asyncio.to_thread(self._extract, file_path)
        except (PyPdfError, OSError, ValueError) as e:
            self.logging.error("Error extracting PDF text from %s: %s", file_path, e)
            raise ExtractionError(f"Failed to extract text from PDF: {e}", operation="extract", context={"path": file_path}) from e
        self.logging.info("Successfully extracted text from %d pages", document.num_pages)
        return document

    @staticmethod
    def _extract(file_path: str) -> ExtractedDocument:
        reader = PdfReader(file_path)
        pages: list[ExtractedPage] = []
        current_char = 0
        for i, page in enumerate(reader.pages):
            text = page.extract_text() or ""
            pages.append(ExtractedPage(page_number=i + 1, text=text, start_char=current_char, end_char=current_char + len(text)))
            current_char += len(text)
        return ExtractedDocument(pages=pages, num_pages=len(pages))
