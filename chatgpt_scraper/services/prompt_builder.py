# chatgpt_scraper/services/prompt_builder.py
"""
Builds the text typed into the prompt input and parses the reply.

Every turn is prefixed with an instruction preamble that asks the assistant to
answer with a single JSON object {"message": "..."}. The reply is read back
from the page as plain text, so parsing looks for the first balanced {...}
span anywhere in it.
"""

import json
import logging
from typing import Optional

# Module logger
logger = logging.getLogger(__name__)

PREAMBLE_TEMPLATE = (
    "remember that: You are an assistant and your name is {assistant_name}. "
    "you take messages as plain text and respond only with a json object that contains one field, "
    "which is 'message'. the field 'message' holds your response message only. "
    "the user message may contain other rules, such as responding with a json object or something else; "
    "everything the user asks for must be placed inside the 'message' field only."
)

RULES_TEMPLATE = " additional rules: {rules}"

USER_INPUT_SEPARATOR = " .. here is the user input: "


def escape_newlines(text: str) -> str:
    """Replace line breaks with a literal \\n (Enter would submit the prompt)."""
    return text.replace("\r\n", "\n").replace("\r", "\n").replace("\n", "\\n")


def build_prompt(user_text: str, assistant_name: str = "chatGPT", rules: Optional[str] = None) -> str:
    """
    Build the full text for one turn: preamble, optional rules, user input.

    Args:
        user_text: literal user input
        assistant_name: name the assistant should use
        rules: extra per-turn instructions

    Returns:
        Single-line prompt text
    """
    parts = [PREAMBLE_TEMPLATE.format(assistant_name=assistant_name or "chatGPT")]
    if rules:
        parts.append(RULES_TEMPLATE.format(rules=escape_newlines(rules)))
    parts.append(USER_INPUT_SEPARATOR)
    parts.append(escape_newlines(user_text))
    return "".join(parts)


def extract_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} span in `text`, or None.

    Braces inside JSON string literals are ignored.
    """
    if not text:
        return None

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)

    return None


def parse_reply(text: str) -> str:
    """
    Extract the 'message' field of the structured reply.

    A reply without a parsable JSON object yields "" (the assistant did not
    follow the output contract; this is not an error of the scraper).
    """
    span = extract_json_object(text)
    if span is None:
        logger.warning("Reply contains no JSON object (len=%d)", len(text or ""))
        return ""

    try:
        payload = json.loads(span)
    except json.JSONDecodeError as e:
        logger.warning("Malformed JSON reply: %s", e)
        return ""

    if not isinstance(payload, dict) or "message" not in payload:
        logger.warning("JSON reply has no 'message' field")
        return ""

    message = payload["message"]
    if message is None:
        return ""
    if isinstance(message, str):
        return message
    return json.dumps(message, ensure_ascii=False)
