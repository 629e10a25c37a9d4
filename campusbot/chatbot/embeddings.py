# chatbot/embeddings.py

"""
Semantic search over the knowledge base.

Every KB record (deadline, professor, course, FAQ, major) is flattened to one
line of text and embedded once. Queries are embedded on the fly and compared
with cosine similarity. The index is rebuilt wholesale whenever the KB is
loaded; there is no incremental update.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple
import logging

import numpy as np
import openai
from openai import AsyncOpenAI

from campusbot.chatbot.knowledge import KnowledgeBase

log = logging.getLogger("chatbot.embeddings")

EMBED_BATCH_SIZE = 100


class EmbeddingError(Exception):
    """The embedding provider answered, but not with a usable vector."""


# ---------------------------
# 1) Embedding provider
# ---------------------------


class OpenAIEmbedder:
    """
    Thin async wrapper around the OpenAI embeddings endpoint.

    API-side failures (bad key, quota, malformed response) raise EmbeddingError.
    Transport failures surface as openai.APIConnectionError / APITimeoutError.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "text-embedding-3-small",
        timeout: float = 30.0,
    ) -> None:
        self.model = model
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout) if api_key else None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        if self._client is None:
            raise EmbeddingError("OPENAI_API_KEY is not configured")
        if not texts:
            return []
        try:
            resp = await self._client.embeddings.create(model=self.model, input=list(texts))
        except openai.APIStatusError as exc:
            raise EmbeddingError(f"embedding request failed ({exc.status_code}): {exc.message}") from exc

        data = sorted(resp.data or [], key=lambda d: d.index)
        if len(data) != len(texts):
            raise EmbeddingError(f"expected {len(texts)} embeddings, got {len(data)}")
        return [list(d.embedding) for d in data]

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_many([text])
        return vectors[0]


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


# ---------------------------
# 2) Index items
# ---------------------------


@dataclass
class IndexItem:
    kind: str          # deadline / professor / course / faq / major
    record: Any        # the KB dataclass it came from
    text: str
    embedding: Optional[List[float]] = None


def index_items(kb: KnowledgeBase) -> List[IndexItem]:
    """Flatten every KB record into the text that gets embedded."""
    items: List[IndexItem] = []

    for d in kb.deadlines:
        text = (
            f"Deadline | {d.term} | {d.category} | {d.description} | {d.date} {d.time or ''} | "
            f"{d.notes or ''} | {' '.join(d.keywords)}"
        )
        items.append(IndexItem("deadline", d, text))

    for p in kb.professors:
        rating = p.rating if p.rating is not None else ""
        text = f"Professor | {p.name} | {p.department} | {', '.join(p.courses)} | rating {rating} | {p.reviews}"
        items.append(IndexItem("professor", p, text))

    for c in kb.courses:
        text = f"Course | {c.code} | {c.title} | {c.department} | {c.description or ''} | {c.notes or ''}"
        items.append(IndexItem("course", c, text))

    for f in kb.faq:
        items.append(IndexItem("faq", f, f"FAQ | {f.q} | {f.a} | {' '.join(f.keywords)}"))

    for m in kb.majors:
        text = " | ".join(
            [
                "Major",
                m.campus,
                m.program,
                " ".join(m.aliases),
                "Lower:",
                " ; ".join(m.lower_division),
                "Upper:",
                " ; ".join(m.upper_division),
                m.notes or "",
            ]
        )
        items.append(IndexItem("major", m, text))

    return items


# ---------------------------
# 3) Index
# ---------------------------


class EmbeddingIndex:
    def __init__(self) -> None:
        self.items: List[IndexItem] = []

    def __len__(self) -> int:
        return len(self.items)

    async def build(self, kb: KnowledgeBase, embedder) -> int:
        """
        Embed every KB record and swap the new item list in at the end.
        On failure the previous items stay in place and semantic search
        simply has less (or nothing) to work with.
        """
        items = index_items(kb)
        try:
            for start in range(0, len(items), EMBED_BATCH_SIZE):
                batch = items[start : start + EMBED_BATCH_SIZE]
                vectors = await embedder.embed_many([it.text for it in batch])
                for it, vec in zip(batch, vectors):
                    it.embedding = vec
        except (EmbeddingError, openai.OpenAIError) as exc:
            log.warning("Embedding index build failed: %s", exc)
            return len(self.items)

        self.items = items
        log.info("Built embedding index with %d items", len(items))
        return len(items)

    def nearest(
        self,
        query_vec: Sequence[float],
        min_similarity: float,
        top_k: int = 3,
    ) -> List[Tuple[IndexItem, float]]:
        """Items at or above the similarity floor, most similar first."""
        scored = [(it, cosine(query_vec, it.embedding)) for it in self.items if it.embedding]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [pair for pair in scored if pair[1] >= min_similarity][:top_k]
