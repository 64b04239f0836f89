# =============================================================================
# NAV INDEX (search these tags)
# [NAV-00] Imports / constants
# [NAV-10] Main-thread dispatch / log bridge
# [NAV-20] Screens: ScenarioPageScreen
# [NAV-30] Panels: MemoryPanel
# [NAV-90] MainWindow
# [NAV-99] main() entrypoint
# =============================================================================

# === [NAV-00] Imports / constants ============================================
from __future__ import annotations

import sys
from typing import Callable, Dict, Optional

from PyQt6 import QtCore, QtGui, QtWidgets

from diagnostics.log_buffer import LOG_BUFFER
from diagnostics.logging_setup import configure_logging, get_logger
from scenarios import CATALOG, PageSpec, ScenarioContext, ScenarioSession

from . import config as ui_config

logger = get_logger("app_ui")

REFRESH_INTERVAL_MS = 500
PAGE_ROLE = QtCore.Qt.ItemDataRole.UserRole


# === [NAV-10] Main-thread dispatch / log bridge ==============================
class MainThreadDispatcher(QtCore.QObject):
    """Runs scheduler callbacks marked for the main executor on the GUI thread."""

    invoke = QtCore.pyqtSignal(object)

    def __init__(self, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.invoke.connect(self._run, QtCore.Qt.ConnectionType.QueuedConnection)

    def post(self, thunk: Callable[[], None]) -> None:
        self.invoke.emit(thunk)

    @QtCore.pyqtSlot(object)
    def _run(self, thunk: Callable[[], None]) -> None:
        thunk()


class LogBridge(QtCore.QObject):
    line = QtCore.pyqtSignal(str)

    def __init__(self, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        LOG_BUFFER.add_listener(self._on_line)

    def _on_line(self, text: str) -> None:
        self.line.emit(text)

    def detach(self) -> None:
        LOG_BUFFER.remove_listener(self._on_line)


# === [NAV-20] Screens: ScenarioPageScreen ====================================
class ScenarioPageScreen(QtWidgets.QWidget):
    """One catalog page: a button per scenario."""

    def __init__(self, page: PageSpec, session: ScenarioSession, on_close: Callable[[], None]):
        super().__init__()
        self.page = page
        self.session = session

        layout = QtWidgets.QVBoxLayout(self)
        header = QtWidgets.QHBoxLayout()
        title = QtWidgets.QLabel(page.title)
        title.setStyleSheet("font-size: 18px; font-weight: bold;")
        header.addWidget(title)
        header.addStretch()
        close_btn = QtWidgets.QPushButton("Close")
        close_btn.clicked.connect(on_close)
        header.addWidget(close_btn)
        layout.addLayout(header)

        for scenario in page.scenarios:
            button = QtWidgets.QPushButton(scenario.title)
            if scenario.summary:
                button.setToolTip(scenario.summary)
            button.clicked.connect(session.trigger(scenario.scenario_id))
            layout.addWidget(button)
            if scenario.summary:
                hint = QtWidgets.QLabel(scenario.summary)
                hint.setWordWrap(True)
                hint.setStyleSheet("color: #666; margin-bottom: 8px;")
                layout.addWidget(hint)
        layout.addStretch()


class PlaceholderScreen(QtWidgets.QWidget):
    def __init__(self):
        super().__init__()
        layout = QtWidgets.QVBoxLayout(self)
        label = QtWidgets.QLabel("Pick a page on the left, then run its scenarios.\nWatch the log for deinit lines.")
        label.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        label.setStyleSheet("color: #444;")
        layout.addWidget(label)


# === [NAV-30] Panels: MemoryPanel ============================================
class MemoryPanel(QtWidgets.QWidget):
    """Live entities, leaked cycles, pending timers and the log."""

    def __init__(self, ctx: ScenarioContext, bridge: LogBridge):
        super().__init__()
        self.ctx = ctx
        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)

        live_title = QtWidgets.QLabel("Live entities")
        live_title.setStyleSheet("font-weight: bold;")
        layout.addWidget(live_title)
        self.table = QtWidgets.QTableWidget(0, 3)
        self.table.setHorizontalHeaderLabels(["Entity", "Type", "Strong"])
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.setEditTriggers(QtWidgets.QAbstractItemView.EditTrigger.NoEditTriggers)
        layout.addWidget(self.table, stretch=1)

        self.cycles_label = QtWidgets.QLabel("Leaked cycles: none")
        self.cycles_label.setWordWrap(True)
        layout.addWidget(self.cycles_label)
        self.pending_label = QtWidgets.QLabel("Pending: none")
        self.pending_label.setWordWrap(True)
        layout.addWidget(self.pending_label)

        buttons = QtWidgets.QHBoxLayout()
        clock_btn = QtWidgets.QPushButton("Post Clock Change")
        clock_btn.clicked.connect(ctx.post_clock_change)
        buttons.addWidget(clock_btn)
        collect_btn = QtWidgets.QPushButton("Collect")
        collect_btn.clicked.connect(self._collect)
        buttons.addWidget(collect_btn)
        clear_btn = QtWidgets.QPushButton("Clear Log")
        buttons.addWidget(clear_btn)
        buttons.addStretch()
        layout.addLayout(buttons)

        self.log_view = QtWidgets.QPlainTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setMaximumBlockCount(1000)
        font = QtGui.QFontDatabase.systemFont(QtGui.QFontDatabase.SystemFont.FixedFont)
        self.log_view.setFont(font)
        for line in LOG_BUFFER.get_lines():
            self.log_view.appendPlainText(line)
        layout.addWidget(self.log_view, stretch=2)
        clear_btn.clicked.connect(self.log_view.clear)
        bridge.line.connect(self.log_view.appendPlainText)

    def _collect(self) -> None:
        leaked = self.ctx.arena.collect()
        if not leaked:
            logger.info("collect: nothing held by a cycle")
        self.refresh()

    def refresh(self) -> None:
        report = self.ctx.report()
        rows = report["live"]
        self.table.setRowCount(len(rows))
        for row_index, row in enumerate(rows):
            for col, key in enumerate(("label", "type", "strong")):
                self.table.setItem(row_index, col, QtWidgets.QTableWidgetItem(str(row[key])))
        cycles = report["leaked_cycles"]
        self.cycles_label.setText(f"Leaked cycles: {', '.join(cycles) if cycles else 'none'}")
        pending = [entry["label"] for entry in report["pending"]]
        suspended = report["suspended"]
        text = f"Pending: {', '.join(pending) if pending else 'none'}"
        if suspended:
            text += f" | Suspended: {', '.join(suspended)}"
        self.pending_label.setText(text)


# === [NAV-90] MainWindow =====================================================
class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, session: ScenarioSession, bridge: LogBridge):
        super().__init__()
        self.session = session
        self.bridge = bridge
        self.setWindowTitle("Closure Memory Management")
        self.resize(1200, 760)

        splitter = QtWidgets.QSplitter(QtCore.Qt.Orientation.Horizontal)
        self.setCentralWidget(splitter)

        self.tree = QtWidgets.QTreeWidget()
        self.tree.setHeaderHidden(True)
        self._populate_tree()
        self.tree.itemActivated.connect(self._on_item_activated)
        self.tree.itemClicked.connect(self._on_item_activated)
        splitter.addWidget(self.tree)

        self.stack = QtWidgets.QStackedWidget()
        self.placeholder = PlaceholderScreen()
        self.stack.addWidget(self.placeholder)
        self._pages: Dict[str, ScenarioPageScreen] = {}
        splitter.addWidget(self.stack)

        self.memory_panel = MemoryPanel(session.ctx, bridge)
        splitter.addWidget(self.memory_panel)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 1)
        splitter.setStretchFactor(2, 2)

        self.refresh_timer = QtCore.QTimer(self)
        self.refresh_timer.setInterval(REFRESH_INTERVAL_MS)
        self.refresh_timer.timeout.connect(self.memory_panel.refresh)
        self.refresh_timer.start()

    def _populate_tree(self) -> None:
        for section in CATALOG.sections:
            section_item = QtWidgets.QTreeWidgetItem([section.title])
            section_item.setFlags(section_item.flags() & ~QtCore.Qt.ItemFlag.ItemIsSelectable)
            for page in section.pages:
                page_item = QtWidgets.QTreeWidgetItem([page.title])
                page_item.setData(0, PAGE_ROLE, page.page_id)
                section_item.addChild(page_item)
            self.tree.addTopLevelItem(section_item)
            section_item.setExpanded(True)

    def _on_item_activated(self, item: QtWidgets.QTreeWidgetItem, _column: int = 0) -> None:
        page_id = item.data(0, PAGE_ROLE)
        if not page_id:
            return
        self.open_page(page_id)

    def open_page(self, page_id: str) -> None:
        screen = self._pages.get(page_id)
        if screen is None:
            screen = ScenarioPageScreen(CATALOG.page(page_id), self.session, self.show_home)
            self._pages[page_id] = screen
            self.stack.addWidget(screen)
        self.stack.setCurrentWidget(screen)

    def show_home(self) -> None:
        self.tree.clearSelection()
        self.stack.setCurrentWidget(self.placeholder)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:
        self.refresh_timer.stop()
        self.bridge.detach()
        self.session.shutdown()
        super().closeEvent(event)


# === [NAV-99] main() entrypoint ==============================================
def main():
    config = ui_config.load_lab_config()
    log_info = configure_logging(to_file=config.log_to_file)
    print(f"Logging to: {log_info['log_path']}")
    app = QtWidgets.QApplication(sys.argv)
    dispatcher = MainThreadDispatcher()
    bridge = LogBridge()
    ctx = ScenarioContext.create(config, main_dispatch=dispatcher.post)
    session = ScenarioSession(ctx)
    ctx.scheduler.start()
    window = MainWindow(session, bridge)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
