# example.py
"""
Example: log in once in a visible browser, then send one prompt.

The browser profile is kept in ./.webdata so the login survives restarts.
Logs go to the console and to ~/.chatgpt_scraper/logs/example.log.

Usage:
    python example.py
"""

import asyncio
import logging
import sys
from pathlib import Path

from chatgpt_scraper.services.chatgpt_handler import ChatGPTHandler
from chatgpt_scraper.services.events import ScraperEvent

logger = logging.getLogger("example")


def setup_logging():
    """Configure logging to console and file.

    Log file location: ~/.chatgpt_scraper/logs/example.log

    Returns:
        tuple: (console_handler, file_handler) to keep references alive
    """
    logs_dir = Path.home() / ".chatgpt_scraper" / "logs"
    log_file_path = logs_dir / "example.log"

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    ))

    file_handler = None
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path, mode='w', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    except OSError as e:
        # Console-only logging
        print(f"[WARNING] Failed to create log file {log_file_path}: {e}", file=sys.stderr)
        file_handler = None

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(console_handler)
    if file_handler is not None:
        root_logger.addHandler(file_handler)

    # Suppress asyncio selector debug messages
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return console_handler, file_handler


async def main():
    chatgpt = ChatGPTHandler({
        "assistantName": "Abbas",
        "browserLaunchOptions": {
            "user_data_dir": str(Path.cwd() / ".webdata"),
            "headless": False,
        },
    })
    done = asyncio.Event()

    async def on_ready():
        logger.info("scraper is ready => user logged in")
        try:
            await chatgpt.select_temporary_chat()
            result = await chatgpt.generate("hello, who are you and what you want ?")
            logger.info("reply: %s", result.message)
        finally:
            done.set()

    chatgpt.once(ScraperEvent.READY, on_ready)
    chatgpt.on(ScraperEvent.LOCATION_CHANGE, lambda location: logger.info("there is navigation: %s", location.href))
    chatgpt.on(ScraperEvent.LOGIN_PAGE, lambda: logger.info("navigated to login page, please log in"))
    chatgpt.on(ScraperEvent.DISCONNECTED, lambda: logger.info("user logged out"))
    chatgpt.on(ScraperEvent.INITIALIZED, lambda: logger.info("chatgpt scraper initialized"))
    chatgpt.on(ScraperEvent.HIDE, lambda: logger.info("scraper browser window hidden"))
    chatgpt.on(ScraperEvent.SHOW, lambda: logger.info("scraper browser window shown"))

    await chatgpt.initialize()
    try:
        await done.wait()
    finally:
        await chatgpt.destroy()


if __name__ == "__main__":
    _handlers = setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")
