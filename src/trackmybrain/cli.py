"""CLI interface for TrackMyBrain."""

import os
import shlex

from groq import AsyncGroq

from .assistant import Answer, MemoryAssistant
from .config import AppConfig, config_from_env, load_config
from .llm_client import GroqLLMClient, LLMClient
from .logging import configure_logger, get_logger
from .memory import FileBackend, MemoryKind, MemoryRecord, MemoryStore, StorageError
from .memory.retrieval import format_timestamp

BANNER = """
╔══════════════════════════════════════════╗
║           🧠 TrackMyBrain v0.1.0         ║
║       Local, private memory assistant    ║
╚══════════════════════════════════════════╝

Commands:
  /save <text>               - Save a text note
  /note <kind> <uri> [text]  - Save an image/voice/video note
  /photo <uri>               - Analyze and save a meal photo
  /calories                  - Show today's estimated calories
  /recent [n]                - Show recent notes
  /plain <question>          - Ask without using memories
  /help                      - Show this help
  /exit, /quit               - Exit the CLI

Anything else is answered from your memories.
"""


class CLI:
    """Interactive command-line interface for TrackMyBrain."""

    def __init__(
        self,
        config: AppConfig | None = None,
        store: MemoryStore | None = None,
        llm: LLMClient | None = None,
    ) -> None:
        self.config = config or config_from_env(load_config())
        self.logger = get_logger()

        if store is None:
            store = MemoryStore(FileBackend(self.config.data_dir), event_log=self.logger)
        self.store = store

        if llm is None:
            groq_client = AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))
            llm = GroqLLMClient(
                groq_client,
                model=self.config.model,
                embedding_model=self.config.embedding_model,
                vision_model=self.config.vision_model,
            )

        self.assistant = MemoryAssistant(
            self.store, llm, self.config, event_log=self.logger
        )

    def _format_answer(self, answer: Answer) -> str:
        """Format an answer for display."""
        output = ["\n" + "─" * 40]
        output.append(answer.text)
        output.append("─" * 40)

        if answer.used_fallback:
            output.append("ℹ Answered without memories")
        elif answer.sources:
            output.append(f"📚 Based on {len(answer.sources)} memor{'y' if len(answer.sources) == 1 else 'ies'}")

        return "\n".join(output)

    def _format_record(self, record: MemoryRecord) -> str:
        """Format a stored note as a timeline line."""
        line = f"[{format_timestamp(record.created_at)}] ({record.kind.value}) {record.summary}"
        if record.raw_text and record.raw_text != record.summary:
            preview = record.raw_text.replace("\n", " ")
            if len(preview) > 80:
                preview = preview[:77] + "..."
            line += f"\n    {preview}"
        return line

    async def _save(
        self,
        text: str,
        kind: MemoryKind = MemoryKind.TEXT,
        media_uri: str | None = None,
    ) -> None:
        """Save a note and report the outcome."""
        try:
            record = await self.assistant.save_note(text, kind=kind, media_uri=media_uri)
        except ValueError as e:
            print(f"\n❌ {e}")
            return
        except StorageError as e:
            print(f"\n❌ Memory not saved: {e}")
            return

        suffix = "" if record.has_embedding else " (no embedding, not searchable)"
        print(f"\n✓ Saved memory {record.id}{suffix}")

    async def _show_recent(self, arg: str) -> None:
        """Print the most recent notes."""
        limit = self.config.recent_limit
        if arg:
            try:
                limit = int(arg)
            except ValueError:
                print(f"\n❌ Not a number: {arg}")
                return
            if limit < 0:
                print("\n❌ Count must be non-negative")
                return

        records = await self.store.get_recent(limit)
        if not records:
            print("\nNo memories yet. Save one with /save.")
            return

        print()
        for record in records:
            print(self._format_record(record))

    async def _save_media(self, arg: str) -> None:
        """Handle /note <kind> <uri> <text>."""
        try:
            parts = shlex.split(arg)
        except ValueError as e:
            print(f"\n❌ {e}")
            return
        if len(parts) < 2:
            print("\n❌ Usage: /note <image|voice|video> <uri> [text]")
            return

        try:
            kind = MemoryKind(parts[0].lower())
        except ValueError:
            print(f"\n❌ Unknown kind: {parts[0]}")
            return

        await self._save(" ".join(parts[2:]), kind=kind, media_uri=parts[1])

    async def _save_photo(self, uri: str) -> None:
        """Handle /photo <uri>."""
        if not uri:
            print("\n❌ Usage: /photo <uri>")
            return

        try:
            note = await self.assistant.save_image_note(uri)
        except StorageError as e:
            print(f"\n❌ Memory not saved: {e}")
            return
        except Exception as e:
            print(f"\n❌ Error: {e}")
            self.logger.log("error", error=str(e))
            return

        print("\n" + "─" * 40)
        print(note.analysis)
        print("─" * 40)
        if note.calories is not None:
            print(f"🍽 About {note.calories:.0f} kcal")
        print(f"✓ Saved memory {note.record.id}")

    async def _show_calories(self) -> None:
        """Print today's estimated calorie total."""
        total = await self.assistant.calories_today()
        print(f"\n🍽 Today: about {total:.0f} kcal")

    async def _process_question(self, question: str, use_memories: bool = True) -> None:
        """Answer a question and print the result."""
        try:
            if use_memories:
                answer = await self.assistant.ask_from_memories(question)
            else:
                answer = await self.assistant.ask(question)
        except Exception as e:
            print(f"\n❌ Error: {e}")
            self.logger.log("error", error=str(e))
            return

        print(self._format_answer(answer))

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        name, _, arg = command.strip().partition(" ")
        name = name.lower()
        arg = arg.strip()

        if name in ("/exit", "/quit", "exit", "quit"):
            print("\n👋 Goodbye!")
            self.logger.log("session_end")
            return False

        if name == "/help":
            print(BANNER)
        elif name == "/save":
            await self._save(arg)
        elif name == "/note":
            await self._save_media(arg)
        elif name == "/photo":
            await self._save_photo(arg)
        elif name == "/calories":
            await self._show_calories()
        elif name == "/recent":
            await self._show_recent(arg)
        elif name == "/plain":
            if arg:
                await self._process_question(arg, use_memories=False)
        else:
            print(f"\nUnknown command: {name}. Type /help for commands.")

        return True

    async def run(self) -> None:
        """Run the interactive CLI."""
        print(BANNER)
        print(f"Memories: {await self.store.count()}\n")
        self.logger.log("session_start")

        try:
            while True:
                try:
                    user_input = input("you> ").strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    await self._process_question(user_input)

                except KeyboardInterrupt:
                    print("\n👋 Goodbye!")
                    break

                except EOFError:
                    print("\n👋 Goodbye!")
                    break
        finally:
            self.store.close()


async def run_cli() -> None:
    """Run the CLI with configuration from file and environment."""
    config = config_from_env(load_config())
    configure_logger(config.log_dir)

    if not os.getenv("GROQ_API_KEY"):
        print("❌ Error: GROQ_API_KEY environment variable not set")
        print("Please set it in your .env file or environment")
        return

    cli = CLI(config=config)
    await cli.run()
