"""
main.py: Entry point for PDF Overlay Editor
"""

import logging
import os
import sys

# High-DPI support
os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")

from PyQt6.QtGui import QFont
from PyQt6.QtWidgets import QApplication

from main_window import MainWindow


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    app = QApplication(sys.argv)
    app.setApplicationName("PDF Overlay Editor")
    app.setOrganizationName("PDFOverlayEditor")
    app.setStyle("Fusion")
    app.setFont(QFont("Segoe UI", 10))

    app.setStyleSheet("""
        QMainWindow { background: #f0f0f0; }
        QScrollArea#pdfScrollArea { border: none; background: #444; }
        QToolBar { background: #fafafa; border-bottom: 1px solid #e0e0e0; spacing: 4px; }
        QStatusBar { background: #fafafa; border-top: 1px solid #e0e0e0; }
    """)

    window = MainWindow()

    # Open a file passed as command-line argument
    for arg in sys.argv[1:]:
        if arg.lower().endswith(".pdf") and os.path.exists(arg):
            window.load_file(arg)
            break

    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
