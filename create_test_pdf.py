#!/usr/bin/env python3
"""
Builds small German menu PDFs for local testing of the upload endpoint
"""
import io
import sys
from typing import Sequence
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from reportlab.lib.units import inch


SAMPLE_MENU = [
    [
        "Trattoria Test",
        "Vorspeisen",
        "Bruschetta mit Tomaten 6,50",
        "Tomatensuppe 5,90",
        "Hauptgerichte",
        "Mit frischem Basilikum und Parmesan bestreut",
        "Spaghetti Carbonara 12,50",
        "Wiener Schnitzel 16,90",
        "Desserts",
        "Tiramisu 6,00",
    ]
]


def build_menu_pdf(pages: Sequence[Sequence[str]]) -> bytes:
    buffer = io.BytesIO()
    # invariant output keeps identical menus byte-identical
    c = canvas.Canvas(buffer, pagesize=A4, invariant=1)
    width, height = A4

    for lines in pages:
        y = height - inch
        for line in lines:
            c.setFont("Helvetica", 11)
            c.drawString(inch, y, line)
            y -= 0.3 * inch
        c.showPage()

    c.save()
    return buffer.getvalue()


def build_scanned_pdf(page_count: int = 1) -> bytes:
    """A PDF whose pages carry only graphics, the way a scanner output looks to a text extractor."""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4, invariant=1)
    width, height = A4

    for page in range(page_count):
        c.rect(inch, inch, width - 2 * inch, height - 2 * inch - page * 10, fill=1)
        c.showPage()

    c.save()
    return buffer.getvalue()


def create_test_menu_pdf(filename="test_menu.pdf"):
    with open(filename, "wb") as f:
        f.write(build_menu_pdf(SAMPLE_MENU))
    print(f"✅ Created {filename}")


if __name__ == "__main__":
    create_test_menu_pdf(sys.argv[1] if len(sys.argv) > 1 else "test_menu.pdf")
