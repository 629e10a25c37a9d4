# campusbot/api/main.py

from contextlib import asynccontextmanager
from typing import Optional
import asyncio
import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import uvicorn

from campusbot.chatbot.actions import CampusAssistant
from campusbot.chatbot.config import Settings, load_settings

log = logging.getLogger("api.main")

SERVER_ERROR_REPLY = "Something went wrong on the server."
EMPTY_MESSAGE_REPLY = "Sorry, I didn't get that."


class ChatRequest(BaseModel):
    message: str = ""
    conversation_id: Optional[str] = None


class ChatResponse(BaseModel):
    reply: str


def create_app(assistant: Optional[CampusAssistant] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    assistant = assistant or CampusAssistant.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # embed the KB in the background; semantic search kicks in once it is ready
        task = asyncio.create_task(assistant.build_index())
        yield
        if not task.done():
            task.cancel()

    app = FastAPI(
        title="Campus Assistant API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.assistant = assistant

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        log.warning("Rejected %s body: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=422, content={"reply": EMPTY_MESSAGE_REPLY})

    @app.get("/health")
    def healthcheck():
        return {
            "status": "ok",
            "service": "campusbot-api",
            "school": assistant.kb.school.name,
            "indexed_items": len(assistant.index),
        }

    @app.post("/chat", response_model=ChatResponse)
    async def chat(req: ChatRequest):
        if not req.message.strip():
            return ChatResponse(reply=EMPTY_MESSAGE_REPLY)
        try:
            answer = await assistant.answer(req.message, req.conversation_id)
        except Exception:
            log.exception("Server error while answering %r", req.message)
            return JSONResponse(status_code=500, content={"reply": SERVER_ERROR_REPLY})
        return ChatResponse(reply=answer.reply)

    return app


app = create_app()


def main() -> None:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    port = int(os.getenv("PORT", "3000"))
    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=port)


if __name__ == "__main__":
    main()
