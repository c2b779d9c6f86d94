"""
AI reply suggestions using Anthropic Claude, backed by the rule table.
"""
import json
import re
import time

import anthropic

from educonnect.core.config import settings
from educonnect.core.logging_config import get_logger
from educonnect.schemas.ai import ReplySuggestions
from educonnect.services.reply_suggestions import (
    SUGGESTION_COUNT,
    SUPPORTED_LANGUAGES,
    VALID_REACTIONS,
    fallback_suggestions,
    is_participation_question,
)

logger = get_logger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = (
    "You help students write short, polite replies to messages from their teachers. "
    "Always answer with a single JSON object and nothing else."
)

_PROMPTS = {
    "ja": """あなたは学生です。教師から届いた次のメッセージへの返信候補を3つ、リアクション候補を3つ提案してください。

件名: {title}
内容: {content}

注意:
- メッセージに質問（例:「参加できますか？」「返信をお願いします」）があれば、その質問に答える返信にしてください。
- 質問がなければ、内容を確認したことを伝える返信にしてください。
- 返信は学生から教師への丁寧で簡潔な日本語で、ちょうど3つにしてください。
- リアクションは次の中からちょうど3つ選んでください: {reactions}

次のJSON形式だけで答えてください:
{{"replies": ["返信1", "返信2", "返信3"], "reactions": ["reaction1", "reaction2", "reaction3"]}}""",
    "vi": """Bạn là học sinh. Hãy đề xuất đúng 3 câu trả lời và đúng 3 phản ứng cho tin nhắn sau từ giáo viên.

Tiêu đề: {title}
Nội dung: {content}

Lưu ý:
- Nếu tin nhắn có câu hỏi (ví dụ: "có thể tham gia không?", "vui lòng phản hồi"), câu trả lời phải trả lời câu hỏi đó.
- Nếu không có câu hỏi, câu trả lời xác nhận đã đọc và hiểu nội dung.
- Câu trả lời lịch sự, ngắn gọn bằng tiếng Việt, đúng 3 câu.
- Phản ứng chọn đúng 3 từ danh sách: {reactions}

Chỉ trả về JSON theo dạng:
{{"replies": ["trả lời 1", "trả lời 2", "trả lời 3"], "reactions": ["reaction1", "reaction2", "reaction3"]}}""",
}


def get_anthropic_client() -> anthropic.Anthropic:
    """Get configured Anthropic client."""
    if not settings.anthropic_api_key:
        logger.error("Anthropic API key not configured")
        raise ValueError("ANTHROPIC_API_KEY not configured")
    return anthropic.Anthropic(api_key=settings.anthropic_api_key)


async def generate_content(
    prompt: str,
    system_prompt: str = SYSTEM_PROMPT,
    max_tokens: int = 800,
    temperature: float = 0.7,
) -> str:
    """
    Generate text with the Anthropic Claude API.

    Args:
        prompt: The user prompt
        system_prompt: The system context for the model
        max_tokens: Maximum tokens in response
        temperature: Creativity level (0-1)

    Returns:
        Generated text content
    """
    start_time = time.time()
    logger.info(f"Starting AI generation | model={settings.claude_model} | max_tokens={max_tokens}")
    logger.debug(f"Prompt length: {len(prompt)} chars")

    try:
        client = get_anthropic_client()
        message = client.messages.create(
            model=settings.claude_model,
            max_tokens=max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
        )

        duration_ms = (time.time() - start_time) * 1000
        content = message.content[0].text
        logger.info(
            f"AI generation completed | duration={duration_ms:.2f}ms | "
            f"input_tokens={message.usage.input_tokens} | output_tokens={message.usage.output_tokens}"
        )
        return content

    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(f"AI generation failed | duration={duration_ms:.2f}ms | error={str(e)}")
        raise


def build_suggestion_prompt(title: str, content: str, language: str) -> str:
    return _PROMPTS[language].format(
        title=title, content=content, reactions=", ".join(VALID_REACTIONS),
    )


def parse_suggestions(text: str) -> tuple[list[str], list[str]] | None:
    """Pull ``replies``/``reactions`` out of the first JSON object in ``text``.

    Unknown reactions are dropped and both lists are cut to three items.
    Returns None when no JSON object can be parsed.
    """
    match = _JSON_BLOCK.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None

    replies = [r.strip() for r in parsed.get("replies") or [] if isinstance(r, str) and r.strip()]
    reactions = [r for r in parsed.get("reactions") or [] if r in VALID_REACTIONS]
    return replies[:SUGGESTION_COUNT], reactions[:SUGGESTION_COUNT]


def _top_up(items: list[str], extra: list[str]) -> list[str]:
    result = list(items)
    for item in extra:
        if len(result) >= SUGGESTION_COUNT:
            break
        if item not in result:
            result.append(item)
    return result[:SUGGESTION_COUNT]


async def generate_reply_suggestions(
    title: str,
    content: str,
    language: str | None = None,
) -> ReplySuggestions:
    """Three replies and three reactions for a student answering ``title``/``content``.

    Attendance/reply requests and deployments without an API key go
    straight to the rule table. Otherwise Claude is asked first and any
    shortfall is filled from the rule table; model or parse failures fall
    back to the rule table entirely.
    """
    language = language or settings.suggestion_language
    if language not in SUPPORTED_LANGUAGES:
        language = SUPPORTED_LANGUAGES[0]

    if is_participation_question("", content, include_answer_requests=False):
        logger.debug("Participation question detected, using rule table")
        return fallback_suggestions(title, content, language)

    if not settings.anthropic_api_key:
        return fallback_suggestions(title, content, language)

    try:
        text = await generate_content(build_suggestion_prompt(title, content, language))
    except Exception:
        logger.warning("Reply suggestion generation failed, using rule table", exc_info=True)
        return fallback_suggestions(title, content, language)

    parsed = parse_suggestions(text)
    if parsed is None:
        logger.warning("Could not parse reply suggestions from model output, using rule table")
        return fallback_suggestions(title, content, language)

    replies, reactions = parsed
    if len(replies) < SUGGESTION_COUNT or len(reactions) < SUGGESTION_COUNT:
        fallback = fallback_suggestions(title, content, language)
        replies = _top_up(replies, fallback.replies)
        reactions = _top_up(reactions, fallback.reactions)

    return ReplySuggestions(replies=replies, reactions=reactions)
