"""Lumina console entry point."""

import argparse
import asyncio
import logging

from lumina.app import Assistant, create_assistant
from lumina.config import settings
from lumina.llm.prompt import Persona
from lumina.tools.base import ActionKind, AgenticAction
from lumina.tools.record_tools import format_amount

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def describe_action(action: AgenticAction, currency: str = "₹") -> str | None:
    """One confirmation line for an executed action, or None."""
    if not action.executed:
        return None
    data = action.payload
    if action.kind is ActionKind.TRANSACTION:
        amount = format_amount(data["amount"])
        return f"✅ Added {data['type']}: {currency}{amount} for {data['category']}"
    if action.kind is ActionKind.SCHEDULE:
        return f"📅 Created schedule: {data['title']}"
    if action.kind is ActionKind.JOURNAL:
        return f"📔 Added journal entry with {data['mood']} mood"
    return None


async def _print_insights(assistant: Assistant) -> None:
    report = await assistant.insights.generate_all()
    print(f"\n💰 Financial health\n{report.financial_health}")
    print(f"\n🧘 Mood trends\n{report.mood_trends}")
    print(f"\n📅 Schedule tips\n{report.schedule_tips}")
    print(f"\n🌟 Quote of the day\n{report.daily_quote}\n")


async def chat_loop(assistant: Assistant, persona: Persona) -> None:
    """Read lines from stdin and answer them until /quit or EOF."""
    print(f"Lumina ({persona.display_name}). Commands: /persona NAME, /insights, /quit")
    while True:
        try:
            line = await asyncio.to_thread(input, "you> ")
        except EOFError:
            break
        line = line.strip()
        if not line:
            continue
        if line == "/quit":
            break
        if line.startswith("/persona"):
            persona = Persona.parse(line.removeprefix("/persona"))
            print(f"Switched to {persona.display_name}")
            continue
        if line == "/insights":
            await _print_insights(assistant)
            continue

        reply = await assistant.orchestrator.send_message(line, persona)
        lines = [reply.text]
        lines.extend(
            text
            for action in reply.actions
            if (text := describe_action(action, settings.currency_symbol))
        )
        print("lumina> " + "\n".join(lines))


async def run(persona: Persona) -> None:
    assistant = create_assistant(settings)
    await assistant.store.init()
    if not settings.has_api_key:
        logger.warning("ANTHROPIC_API_KEY is empty — every message will get a configuration error")
    logger.info("Starting Lumina with model %s...", settings.claude_model)
    await chat_loop(assistant, persona)


def main() -> None:
    """Start an interactive chat session in the terminal."""
    parser = argparse.ArgumentParser(description="Chat with Lumina")
    parser.add_argument(
        "--persona",
        default=Persona.GENERAL.value,
        help="GENERAL, FINANCIAL, EXECUTIVE or WELLNESS",
    )
    args = parser.parse_args()
    asyncio.run(run(Persona.parse(args.persona)))


if __name__ == "__main__":
    main()
