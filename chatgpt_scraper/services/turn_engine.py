# chatgpt_scraper/services/turn_engine.py
"""
Submits prompts and detects when the reply is complete.

ChatGPT has no "done" event the page could hook into. Completion is inferred by
text stabilization: the last assistant message is read at a fixed interval and
the reply is complete once two consecutive readings are identical while the
stop button is gone.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional, Sequence

from chatgpt_scraper.config.settings import ScraperSettings
from chatgpt_scraper.models.types import ChatSelection, ChatType, GenerateOptions, GenerateResult
from chatgpt_scraper.services.conversations import ConversationApi
from chatgpt_scraper.services.exceptions import PromptInputTimeoutError
from chatgpt_scraper.services.navigation import NavigationTracker
from chatgpt_scraper.services.prompt_builder import build_prompt, parse_reply
from chatgpt_scraper.services.session import Session

# Module logger
logger = logging.getLogger(__name__)

# Hidden <input type="file"> elements are made visible so they can be clicked
_JS_REVEAL_FILE_INPUTS = '''([selector]) => {
    const inputs = document.querySelectorAll(selector);
    inputs.forEach((input) => {
        input.style.display = "block";
        input.style.visibility = "visible";
        input.removeAttribute("hidden");
    });
    return inputs.length;
}'''


def _enabled_selector(selector: str) -> str:
    """Restrict every alternative of a selector list to enabled elements."""
    return ", ".join(f"{part.strip()}:not([disabled])" for part in selector.split(",") if part.strip())


class TurnEngine:
    """
    Chat selection and prompt/response turns.

    Callers must not run two turns concurrently; both would type into the
    same input.
    """

    # File chooser must open within this time after clicking the file input
    FILE_CHOOSER_TIMEOUT_MS = 10000

    # Log polling progress every N iterations
    POLL_LOG_EVERY = 10

    def __init__(
        self,
        session: Session,
        tracker: NavigationTracker,
        conversations: ConversationApi,
        settings: ScraperSettings,
    ):
        self._session = session
        self._tracker = tracker
        self._conversations = conversations
        self.settings = settings

    # =========================================================================
    # Chat selection
    # =========================================================================

    async def select_new_chat(self) -> bool:
        return await self._navigate_to(ChatSelection.new(), self.settings.new_chat_url)

    async def select_temporary_chat(self) -> bool:
        return await self._navigate_to(ChatSelection.temporary(), self.settings.temporary_chat_url)

    async def select_chat(self, chat_id: str) -> bool:
        return await self._navigate_to(ChatSelection.saved(chat_id), self.settings.saved_chat_url(chat_id))

    async def reload_chat_page(self, chat_id: Optional[str] = None) -> ChatSelection:
        """
        Re-enter the selected chat (or `chat_id`) by going through a new chat first.

        Recovers from a stuck page without losing the chat selection.
        """
        target = ChatSelection.saved(chat_id) if chat_id else self._tracker.selection
        logger.info("Reloading chat page (target=%s)", target)

        await self._navigate_to(ChatSelection.new(), self.settings.new_chat_url, force=True)

        if target.type == ChatType.TEMPORARY:
            await self._navigate_to(target, self.settings.temporary_chat_url, force=True)
        elif target.type == ChatType.SAVED and target.id:
            await self._navigate_to(target, self.settings.saved_chat_url(target.id), force=True)

        return self._tracker.selection

    async def _navigate_to(self, target: ChatSelection, url: str, force: bool = False) -> bool:
        """
        Open `url` unless `target` is already selected.

        Returns:
            True if a navigation was performed
        """
        page = self._session.require_page()
        if not force and self._tracker.selection == target:
            logger.debug("Chat already selected: %s", target)
            return False

        # A query string (e.g. ?temporary-chat=true) makes ChatGPT ask for
        # confirmation before leaving; drop it first.
        location = await page.current_location()
        if location.search:
            bare_url = location.href.split("?", 1)[0]
            logger.debug("Clearing query string before navigation: %s", bare_url)
            await page.navigate(bare_url)

        await page.navigate(url)
        self._tracker.set_selection(target)
        logger.info("Selected chat: %s", target)
        return True

    # =========================================================================
    # Turns
    # =========================================================================

    async def wait_for_load(self) -> None:
        """
        Wait for the prompt input.

        Raises:
            PromptInputTimeoutError: input did not appear within input_timeout_ms
        """
        page = self._session.require_page()
        selector = self.settings.selectors.prompt_input
        if not await page.wait_for_element(selector, self.settings.input_timeout_ms):
            raise PromptInputTimeoutError(
                f"prompt input '{selector}' not found within {self.settings.input_timeout_ms}ms"
            )

    async def generate(self, prompt: str, options: Optional[GenerateOptions] = None) -> GenerateResult:
        """
        Send one prompt and wait for the complete reply.

        Args:
            prompt: user text
            options: search toggle, extra rules, attachments, target chat

        Returns:
            GenerateResult with the parsed message and the chat id after the turn
        """
        options = options or GenerateOptions()
        page = self._session.require_page()
        selectors = self.settings.selectors
        turn_start = time.time()

        if options.target_chat_id:
            if await self._conversations.chat_exists(options.target_chat_id):
                await self.select_chat(options.target_chat_id)
            else:
                logger.warning("Chat %s not found, using the current chat", options.target_chat_id)

        await self.wait_for_load()

        if options.search:
            await self.toggle_search()

        try:
            if options.upload_files:
                await self.attach_files(options.upload_files)

            # Replies already on the page belong to earlier turns
            baseline_count = await page.count_elements(selectors.assistant_message)
            speech_baseline = await page.count_elements(selectors.speech_button)

            text = build_prompt(prompt, self.settings.assistant_name, options.rules)
            await page.click(selectors.prompt_input)
            await page.type_text(selectors.prompt_input, text, self.settings.keyboard_write_delay)
            logger.info("[TIMING] prompt typed: %.2fs (len=%d)", time.time() - turn_start, len(text))

            await self._submit()
            raw_reply = await self.wait_for_completion(baseline_count, speech_baseline)
            logger.info("[TIMING] reply complete: %.2fs (len=%d)", time.time() - turn_start, len(raw_reply))
        finally:
            # Search mode sticks to the composer; switch it back off even after a failed turn
            if options.search and self._session.is_live:
                await self.toggle_search()

        message = parse_reply(raw_reply)
        selection = await self._tracker.refresh()
        return GenerateResult(message=message, chat_id=selection.id or "")

    async def create_chat(self) -> str:
        """Start a new saved chat by sending a throwaway turn; returns its id."""
        await self.select_new_chat()
        result = await self.generate("hi")
        logger.info("Created chat: %s", result.chat_id or "(no id)")
        return result.chat_id

    async def _submit(self) -> None:
        """Wait for the send button to become enabled, then click it once."""
        page = self._session.require_page()
        enabled_selector = _enabled_selector(self.settings.selectors.send_button)
        iteration = 0

        while not await page.element_exists(enabled_selector):
            iteration += 1
            if iteration % self.POLL_LOG_EVERY == 0:
                logger.info("[SEND] send button still disabled (iter=%d)", iteration)
            await asyncio.sleep(self.settings.send_button_poll_interval)

        await page.click(enabled_selector)
        logger.debug("[SEND] send button clicked after %d wait iteration(s)", iteration)

    async def wait_for_completion(self, baseline_count: int = 0, speech_baseline: int = 0) -> str:
        """
        Poll the latest reply until it stops changing.

        Complete when the reading equals the previous one, the stop button is
        absent, and the text is non-empty or a new speech playback button has
        appeared. No attempt limit: generation time is unbounded.

        Args:
            baseline_count: number of assistant messages before sending
            speech_baseline: number of speech playback buttons before sending

        Returns:
            The raw reply text
        """
        page = self._session.require_page()
        selectors = self.settings.selectors
        interval = self.settings.response_poll_interval
        last_text = ""
        iteration = 0

        while True:
            await asyncio.sleep(interval)
            iteration += 1

            current_text = await self._latest_reply_text(baseline_count)
            generating = await page.element_exists(selectors.stop_button)
            speech_ready = await page.count_elements(selectors.speech_button) > speech_baseline

            if current_text == last_text and not generating and (current_text.strip() or speech_ready):
                logger.debug("[POLLING] iter=%d reply stable (len=%d)", iteration, len(current_text))
                return current_text

            if iteration % self.POLL_LOG_EVERY == 0:
                logger.info("[POLLING] iter=%d generating=%s text_len=%d",
                            iteration, generating, len(current_text))
            last_text = current_text

    async def _latest_reply_text(self, baseline_count: int) -> str:
        page = self._session.require_page()
        texts = await page.inner_texts(self.settings.selectors.assistant_message)
        if len(texts) <= baseline_count:
            return ""
        return texts[-1] or ""

    # =========================================================================
    # Composer affordances
    # =========================================================================

    async def toggle_search(self) -> bool:
        """Click the search mode toggle (called before and after a search turn)."""
        page = self._session.require_page()
        clicked = await page.click(self.settings.selectors.search_toggle)
        if not clicked:
            logger.warning("Search toggle not found: %s", self.settings.selectors.search_toggle)
        return clicked

    async def attach_files(self, paths: Sequence[Path | str]) -> bool:
        """
        Attach files through the page's file chooser.

        Failures are logged and reported as False; the turn continues without
        the attachment.
        """
        page = self._session.require_page()
        selectors = self.settings.selectors

        files = []
        for path in paths:
            file_path = Path(path)
            if file_path.exists():
                files.append(str(file_path.resolve()))
            else:
                logger.warning("Attachment not found, skipping: %s", file_path)
        if not files:
            return False

        chooser_task = None
        try:
            revealed = await page.evaluate(_JS_REVEAL_FILE_INPUTS, selectors.file_input)
            logger.debug("Revealed %s file input(s)", revealed)

            chooser_task = asyncio.ensure_future(page.wait_for_file_chooser(self.FILE_CHOOSER_TIMEOUT_MS))
            # Let the waiter register before the click opens the dialog
            await asyncio.sleep(0)

            clicked = await page.click(selectors.file_input)
            if not clicked:
                clicked = await page.click(selectors.attach_button)
            if not clicked:
                logger.warning("Could not find attachment mechanism for files: %s", files)
                return False

            chooser = await chooser_task
            await chooser.accept(files)
            logger.info("Attached %d file(s)", len(files))
            return True
        except Exception as e:
            logger.warning("Error attaching files %s: %s", files, e)
            return False
        finally:
            if chooser_task is not None and not chooser_task.done():
                chooser_task.cancel()
