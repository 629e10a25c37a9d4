# chatbot/llm_answer.py

"""
LLM-backed answer writer.

Goal: take the user's message plus the retrieved KB snippets, e.g.

    Snippet 1 [ranking]:
    🏆 #1 Alice Chen - Computer Science
    • Course: CIS 22B
    ...

and let the chat model phrase a short, grounded answer. Retrieval decides
WHAT can be said; this module only decides HOW it is said.
"""

from __future__ import annotations

from typing import Dict, List, Optional

import openai
from openai import AsyncOpenAI

# ---------------------------
# 1) Prompts
# ---------------------------

SYSTEM_PROMPT = """
You are a concise, accurate campus assistant.

Rules:
1) Never recommend a professor by name unless that name appears in the provided context snippets.
2) If intent is "class_full" and a previous turn selected a professor for a course, first suggest
   the next best ranked professor by name (if available), then mention deadlines/waitlist steps.
3) Do NOT paste the context snippets verbatim or list them back.
4) First, answer the user's question in 1-3 sentences.
5) Then, if helpful, add at most 2 short supporting bullets from the snippets.
6) Ignore any snippet that is not clearly relevant.
7) If the snippets don't contain the answer, say so briefly and give practical next steps
   (e.g., waitlist options, email instructor, check add/drop date, tutoring center link).
""".strip()

CLASS_FULL_GUIDANCE = (
    'If intent is "class_full", recommend the next-best ranked professor for the last discussed '
    "course first (by name), then mention practical steps (waitlist, email instructor, add/drop date)."
)


class CompletionError(Exception):
    """The chat model could not produce an answer."""


# ---------------------------
# 2) Message builder
# ---------------------------


def build_messages(
    user_message: str,
    intent: str,
    snippets: str = "",
    anti_fabrication: str = "",
) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    if anti_fabrication:
        messages.append({"role": "system", "content": anti_fabrication})
    messages.append({"role": "system", "content": CLASS_FULL_GUIDANCE})
    messages.append({"role": "system", "content": f"Detected intent: {intent}"})
    if snippets:
        messages.append({"role": "system", "content": f"Context:\n{snippets}"})
    messages.append({"role": "user", "content": user_message})
    return messages


# ---------------------------
# 3) Client
# ---------------------------


class ChatCompleter:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        temperature: float = 0.5,
        max_tokens: int = 400,
        timeout: float = 30.0,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        # If OPENAI_API_KEY is not set, every call raises CompletionError instead.
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout) if api_key else None

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        if self._client is None:
            raise CompletionError("OPENAI_API_KEY is not configured")
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=messages,
            )
        except openai.OpenAIError as exc:
            raise CompletionError(str(exc)) from exc

        if not resp.choices:
            raise CompletionError("the model returned no choices")
        content = resp.choices[0].message.content or ""
        if not content.strip():
            raise CompletionError("the model returned an empty answer")
        return content.strip()
