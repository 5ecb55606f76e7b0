import textwrap
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for server environments
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages
from ministry_scanner.config.paths import EXPORTS_DIR
from ministry_scanner.config.settings import CHURCH_NAME, PDF_PAGE_SIZE, PDF_LINES_PER_PAGE
from ministry_scanner.utils.logging import setup_logger

PRIMARY_COLOR = "#1e3a8a"
TEXT_COLOR = "#1f2937"
LIGHT_TEXT_COLOR = "#6b7280"

# Characters per line before a value wraps
WRAP_WIDTH = 70


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ProfilePdfExporter:
    """
    Renders a flat profile field mapping into a paginated A4 PDF.

    The mapping is ``{section title: {label: value}}``; empty values are
    left out and a section with nothing left is dropped entirely.
    """

    def __init__(self, exports_dir=None, lines_per_page: int = PDF_LINES_PER_PAGE):
        self.logger = setup_logger()
        self.exports_dir = Path(exports_dir) if exports_dir else EXPORTS_DIR
        self.exports_dir.mkdir(parents=True, exist_ok=True)
        self.lines_per_page = lines_per_page

    def layout(self, sections: Dict[str, Dict]) -> List[Tuple[str, str]]:
        """
        Flatten sections into printable lines.

        Returns:
            list of (kind, text) where kind is 'section', 'field' or 'wrap'
        """
        lines = []
        for section, values in sections.items():
            present = [(label, value) for label, value in values.items() if not _is_empty(value)]
            if not present:
                continue

            lines.append(('section', section.upper()))
            for label, value in present:
                wrapped = textwrap.wrap(str(value), WRAP_WIDTH) or [""]
                lines.append(('field', f"{label}: {wrapped[0]}"))
                lines.extend(('wrap', part) for part in wrapped[1:])
        return lines

    def paginate(self, lines: List[Tuple[str, str]]) -> List[List[Tuple[str, str]]]:
        """
        Split lines into pages. A section title never ends a page.
        """
        pages = []
        index = 0
        while index < len(lines):
            page = lines[index:index + self.lines_per_page]
            if (len(page) > 1 and page[-1][0] == 'section'
                    and index + self.lines_per_page < len(lines)):
                page = page[:-1]
            pages.append(page)
            index += len(page)
        return pages or [[]]

    def export(self, sections: Dict[str, Dict], title: str, filename: str = None,
               subtitle: str = None, image: Optional[str] = None):
        """
        Write the PDF.

        Args:
            sections: {section title: {label: value}}
            title: Document title, e.g. "MEMBER INFORMATION"
            filename: Output file name inside the exports directory
            subtitle: Usually the person's full name
            image: Optional local image path shown on the first page

        Returns:
            Path of the written file
        """
        generated = datetime.now()
        if not filename:
            stem = "_".join((subtitle or title).split())
            filename = f"{stem}_{generated.strftime('%Y-%m-%d_%H-%M-%S')}.pdf"
        output_path = self.exports_dir / filename

        pages = self.paginate(self.layout(sections))
        footer = f"{title.title()} - {subtitle or ''} - Generated on {generated.strftime('%b %d, %Y')}"

        try:
            with PdfPages(output_path) as pdf:
                for number, page in enumerate(pages, start=1):
                    fig = plt.figure(figsize=PDF_PAGE_SIZE)
                    top = 0.93
                    if number == 1:
                        top = self._draw_header(fig, title, subtitle, generated)
                        self._draw_image(fig, image)
                    self._draw_lines(fig, page, top)
                    fig.text(0.08, 0.03, footer, fontsize=7, color=LIGHT_TEXT_COLOR)
                    fig.text(0.92, 0.03, f"Page {number} of {len(pages)}", fontsize=7,
                             color=LIGHT_TEXT_COLOR, ha='right')
                    pdf.savefig(fig)
                    plt.close(fig)

                info = pdf.infodict()
                info['Title'] = f"{title} - {subtitle}" if subtitle else title
                info['Creator'] = CHURCH_NAME

            self.logger.info(f"PDF exported: {output_path}")
            return output_path

        except Exception as e:
            self.logger.error(f"Failed to export PDF {output_path}: {e}")
            raise

    def _draw_header(self, fig, title, subtitle, generated):
        fig.text(0.5, 0.96, CHURCH_NAME, ha='center', fontsize=11, weight='bold', color=PRIMARY_COLOR)
        fig.add_artist(plt.Line2D([0.08, 0.92], [0.945, 0.945], color=PRIMARY_COLOR, linewidth=0.8))
        fig.text(0.5, 0.915, title, ha='center', fontsize=14, weight='bold', color=TEXT_COLOR)
        y = 0.89
        if subtitle:
            fig.text(0.5, y, subtitle, ha='center', fontsize=12, weight='bold', color=PRIMARY_COLOR)
            y -= 0.02
        fig.text(0.5, y, f"Generated on {generated.strftime('%B %d, %Y')}", ha='center',
                 fontsize=8, color=LIGHT_TEXT_COLOR)
        return y - 0.04

    def _draw_image(self, fig, image):
        if not image:
            return
        path = Path(image)
        if not path.exists():
            self.logger.info(f"Profile image not available locally, skipped: {image}")
            return
        try:
            pixels = plt.imread(str(path))
        except (OSError, ValueError) as e:
            self.logger.warning(f"Could not read profile image {image}: {e}")
            return
        ax = fig.add_axes([0.76, 0.80, 0.14, 0.12])
        ax.imshow(pixels)
        ax.axis('off')

    def _draw_lines(self, fig, page, top):
        step = (top - 0.07) / max(self.lines_per_page, 1)
        y = top
        for kind, text in page:
            if kind == 'section':
                fig.text(0.08, y, text, fontsize=10, weight='bold', color=PRIMARY_COLOR)
            elif kind == 'field':
                fig.text(0.10, y, text, fontsize=9, color=TEXT_COLOR)
            else:
                fig.text(0.12, y, text, fontsize=9, color=TEXT_COLOR)
            y -= step
