"""
Prompt construction for every model call the service makes.

All builders are pure: the same request always produces the same message
list, so tests can compare prompts directly.
"""

from typing import List

from pdfquiz.schemas.chat import ChatMessage
from pdfquiz.schemas.quiz import OPTION_COUNT, GenerationRequest, ReviewRequest

# ── System Prompts ────────────────────────────────────────────────────────────

QUIZ_SYSTEM_PROMPT = "You are a helpful and expert teacher."
REVIEW_SYSTEM_PROMPT = "You are a helpful and expert tutor."
TITLE_SYSTEM_PROMPT = "You are a helpful assistant."

QUIZ_FORMAT_EXAMPLE = '[{ "question": "...", "options": ["A", "B", "C", "D"], "answer": "A" }, ...]'
REVIEW_FORMAT_EXAMPLE = '{\n  "review": "...",\n  "recommendations": "..."\n}'


# ── Quiz ──────────────────────────────────────────────────────────────────────

def build_quiz_messages(request: GenerationRequest) -> List[ChatMessage]:
    """System persona, the generation instruction, then the attached document."""
    instruction = (
        "You are a teacher. Your job is to read the following PDF (provided as base64) "
        f"and create a multiple choice test with exactly {request.question_count} questions "
        "strictly based on the actual content of the PDF. "
        "Do NOT ask about PDFs in general, but only about the information, facts, "
        "or topics found inside this specific document. "
        f"Each question must have exactly {OPTION_COUNT} options and only one correct answer; "
        "the answer must be copied verbatim from the options. "
        f"The exam difficulty should be '{request.difficulty.value}'. "
        f"Respond ONLY with a JSON array of questions in this format: {QUIZ_FORMAT_EXAMPLE}"
    )
    return [
        ChatMessage(role="system", content=QUIZ_SYSTEM_PROMPT),
        ChatMessage(role="user", content=instruction),
        ChatMessage(
            role="user",
            content=f"PDF '{request.document.name}' (base64):",
            document=request.document,
        ),
    ]


# ── Review ────────────────────────────────────────────────────────────────────

def build_review_messages(request: ReviewRequest) -> List[ChatMessage]:
    blocks = [
        f"Q{i + 1}: {q.question}\n"
        f"Options: {' | '.join(q.options)}\n"
        f"Correct: {q.answer}\n"
        f"User: {answer}"
        for i, (q, answer) in enumerate(zip(request.questions, request.user_answers))
    ]
    prompt = (
        "You are an expert tutor. Given the following multiple-choice questions, "
        "the user's answers, and the correct answers, provide a personalized review "
        "of the user's performance. Highlight areas for improvement and recommend "
        "what the user should learn next. Be specific and encouraging.\n\n"
        "Questions and Answers:\n"
        + "\n\n".join(blocks)
        + "\n\nRespond ONLY with a valid JSON object in this format and nothing else: "
        + REVIEW_FORMAT_EXAMPLE
    )
    return [
        ChatMessage(role="system", content=REVIEW_SYSTEM_PROMPT),
        ChatMessage(role="user", content=prompt),
    ]


# ── Title ─────────────────────────────────────────────────────────────────────

def build_title_messages(filename: str) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content=TITLE_SYSTEM_PROMPT),
        ChatMessage(
            role="user",
            content=f"Generate a max three word title for a quiz based on the file name: {filename}",
        ),
    ]
