import logging

from core.config import (
    BASE_URL, IDENTITY, LOG_FILE, LOG_LEVEL, PASSWORD, REQUEST_TIMEOUT, SUGGEST_URL,
)
from core.exceptions import PBError
from core.logging_setup import setup_logging
from storage.pocketbase import PocketBaseClient
from controller.app_controller import AppController
from services.suggestions import SuggestionClient

logger = logging.getLogger(__name__)


def main():
    setup_logging(LOG_LEVEL, LOG_FILE or None)
    client = PocketBaseClient(BASE_URL, timeout=REQUEST_TIMEOUT)
    if IDENTITY and PASSWORD:
        try:
            client.login(IDENTITY, PASSWORD)
        except PBError as e:
            # fall back to the sign-in dialog
            logger.error("Login error: %s", e)

    suggestions = SuggestionClient(SUGGEST_URL, timeout=REQUEST_TIMEOUT * 3) if SUGGEST_URL else None
    controller = AppController(client, suggestions=suggestions)

    # tkinter is only needed once we actually open a window
    from gui.main_window import MainWindow
    ui = MainWindow(controller)
    ui.mainloop()


if __name__ == "__main__":
    main()
