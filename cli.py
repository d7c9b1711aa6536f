"""CLI: chat with one surface's agent in the terminal. For the API, use: python run_api.py."""
import argparse
import asyncio

from dotenv import load_dotenv

load_dotenv()

from app.core.registry import ConversationRegistry
from app.core.surfaces import SURFACES


async def _chat(surface: str) -> None:
    registry = ConversationRegistry()
    controller = registry.open(surface)
    print(f"[{controller.session_id}]")
    print(controller.greeting)
    try:
        while True:
            try:
                text = input("> ")
            except EOFError:
                break
            if text.strip() in ("/quit", "/exit"):
                break
            reply = await controller.submit(text)
            if reply is not None:
                print(reply.text)
    finally:
        await registry.aclose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("surface", nargs="?", default="patient", choices=sorted(SURFACES))
    args = parser.parse_args()
    asyncio.run(_chat(args.surface))
