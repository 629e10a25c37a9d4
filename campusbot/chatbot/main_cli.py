from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table
import asyncio
import logging
import os

from campusbot.chatbot.actions import Answer, CampusAssistant
from campusbot.chatbot.config import load_settings

console = Console()
log = logging.getLogger("chatbot.cli")

EXPLAIN_FLAGS = ("--explain", "-explain")


def _print_hits(answer: Answer):
    console.print(f"[dim]Intent: {answer.intent} | mode: {answer.mode}[/dim]")
    if not answer.hits:
        console.print("[yellow]No KB snippets were used for this answer.[/yellow]")
        return

    tbl = Table(show_header=True, header_style="bold")
    tbl.add_column("#")
    tbl.add_column("Type")
    tbl.add_column("Score")
    tbl.add_column("Snippet")
    for i, h in enumerate(answer.hits, start=1):
        first_line = h.render().splitlines()[0]
        tbl.add_row(str(i), h.type, f"{h.score:g}", first_line)
    console.print(tbl)


def _split_explain(text: str):
    lowered = text.lower()
    for flag in EXPLAIN_FLAGS:
        if flag in lowered:
            idx = lowered.index(flag)
            return (text[:idx] + text[idx + len(flag):]).strip(), True
    return text, False


async def _chat_loop(assistant: CampusAssistant):
    with console.status("Building embedding index..."):
        count = await assistant.build_index()
    console.print(f"[dim]🧠 {count} KB items indexed for {assistant.kb.school.name}[/dim]\n")

    while True:
        user = Prompt.ask("You")
        if user.strip().lower() in {"exit", "quit"}:
            break
        if user.strip().lower() == "help":
            console.print(
                "Examples:\n"
                "  • best professor for CIS 22B\n"
                "  • the class is full, who else?\n"
                "  • when is the last day to drop?\n"
                "  • UCSD data science transfer requirements\n"
                "Flags:\n"
                "  • --explain  (prints the detected intent and the snippets used)\n"
                "Commands:\n"
                "  • reset  (forget the course / professor discussed so far)"
            )
            continue
        if user.strip().lower() == "reset":
            assistant.sessions.reset()
            console.print("[dim]Conversation reset.[/dim]")
            continue

        text, explain = _split_explain(user)
        answer = await assistant.answer(text)
        console.print(f"[bold]Bot[/bold]: {answer.reply}")
        if explain:
            _print_hits(answer)


def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING"))
    console.print("[bold]Campus Assistant[/bold]")
    console.print("Ask about professors, courses, deadlines or majors.")
    console.print("Type 'help' for tips. Type 'exit' to quit.\n")

    assistant = CampusAssistant.from_settings(load_settings())
    asyncio.run(_chat_loop(assistant))


if __name__ == "__main__":
    main()
