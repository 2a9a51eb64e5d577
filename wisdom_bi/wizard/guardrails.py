"""
Guardrails for the CFO assistant.

Covers both directions of the conversation:
- input: sanitising user messages and history, spotting prompt injection
- output: flagging implausible numbers and restricted advice topics
"""
import logging
import re
from typing import List, Optional, Tuple

from wisdom_bi.wizard.schemas import CFOMessage

logger = logging.getLogger(__name__)

USER_MESSAGE_MAX_CHARS = 2000
HISTORY_MESSAGE_MAX_CHARS = 4000
MAX_HISTORY_MESSAGES = 50

# Reply patterns worth a warning in the UI
FLAG_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"salary.*\b(30|35|40)k\b", re.IGNORECASE), "Salary seems very low for Australian market"),
    (re.compile(r"net.*margin.*[4-9]0%", re.IGNORECASE), "Net margin seems unusually high"),
    (re.compile(r"revenue.*growth.*[6-9]0%", re.IGNORECASE), "Revenue growth seems very aggressive"),
]

RESTRICTED_TOPICS = [
    "tax advice",
    "legal advice",
    "specific investment recommendations",
    "personal financial advice",
]

INJECTION_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("ignore_instructions", re.compile(r"ignore\s+(all\s+)?(previous|prior|above|earlier)\s+(instructions|prompts?|rules)", re.IGNORECASE)),
    ("disregard_instructions", re.compile(r"disregard\s+(all\s+)?(previous|prior|above|your)\s+(instructions|prompts?|rules)", re.IGNORECASE)),
    ("role_override", re.compile(r"you\s+are\s+now\s+(a|an|the)\b", re.IGNORECASE)),
    ("system_prompt_probe", re.compile(r"(reveal|show|print|repeat)\s+(me\s+)?(your|the)\s+(system\s+prompt|instructions)", re.IGNORECASE)),
    ("fake_system_message", re.compile(r"^\s*(system|assistant)\s*:", re.IGNORECASE | re.MULTILINE)),
    ("chat_template_tokens", re.compile(r"<\|?(im_start|im_end|endoftext)\|?>", re.IGNORECASE)),
    ("marker_injection", re.compile(r"\[(STEP_COMPLETE|SUGGEST)\]", re.IGNORECASE)),
]

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def check_guardrails(reply: str) -> List[str]:
    """Warnings for a model reply (implausible numbers, restricted topics)."""
    warnings = [message for pattern, message in FLAG_PATTERNS if pattern.search(reply)]

    lowered = reply.lower()
    for topic in RESTRICTED_TOPICS:
        if topic in lowered:
            warnings.append(f"Response mentions restricted topic: {topic}. Please consult a professional.")

    return warnings


def sanitize_ai_input(text: Optional[str], max_chars: int = USER_MESSAGE_MAX_CHARS) -> str:
    """Strip control characters, trim and cap the length of user text."""
    if not text:
        return ""
    cleaned = _CONTROL_CHARS.sub("", text).strip()
    return cleaned[:max_chars]


def sanitize_conversation_history(history: List[CFOMessage]) -> List[CFOMessage]:
    """Keep the most recent non-empty messages, each sanitised and capped."""
    sanitized = []
    for msg in history[-MAX_HISTORY_MESSAGES:]:
        content = sanitize_ai_input(msg.content, HISTORY_MESSAGE_MAX_CHARS)
        if not content:
            continue
        sanitized.append(msg.model_copy(update={"content": content}))
    return sanitized


def detect_prompt_injection(text: str) -> Optional[str]:
    """Name of the first injection pattern found in the text, if any."""
    for name, pattern in INJECTION_PATTERNS:
        if pattern.search(text or ""):
            return name
    return None


def log_suspicious_input(endpoint: str, user_id: str, text: str, pattern: str) -> None:
    """Record suspected prompt injection. The request is not blocked."""
    logger.warning(
        f"Suspicious input on {endpoint} from user {user_id} "
        f"(pattern={pattern}): {text[:200]!r}"
    )
