"""
Run Chat — end-to-end: MCP SSE server → answer strategy → answer.

This is the script that closes the loop. It:
1. Loads settings from the environment / .env
2. Connects to the MCP server's SSE stream and waits for the endpoint
3. Initializes the session and discovers tools
4. Picks an answer strategy (OpenAI function calling or hosted assistant)
5. Answers one question, or loops on stdin
6. Disconnects

Usage:
    # List the server's tools
    python run_chat.py --list-tools

    # One-shot question
    python run_chat.py -q "Who is the top agent this month?"

    # Force the hosted assistant (falls back to keyword tool matching)
    python run_chat.py -q "Show lenders in Reno" --strategy assistant

    # Identity context appended to every prompt
    python run_chat.py --user-id 42 --user-role admin

    # Interactive
    python run_chat.py
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from mcp_chat.agent import STRATEGY_CHOICES, ChatAgent, IdentityContext
from mcp_chat.config import Settings
from mcp_chat.errors import McpChatError

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def print_tools(agent: ChatAgent) -> None:
    tools = agent.session.tools
    print(f"\nAvailable tools ({len(tools)}):\n")
    for tool in tools:
        params = ", ".join(
            f"{name}{'*' if name in tool.input_schema.required else ''}"
            for name in tool.input_schema.properties
        ) or "none"
        print(f"  {tool.name:<35} {tool.description}")
        print(f"  {'':<35} params: {params}")
    print()


async def interactive(agent: ChatAgent, identity: IdentityContext | None) -> None:
    loop = asyncio.get_running_loop()
    print("Ready to chat! Type 'exit' to quit.\n")
    while True:
        try:
            question = await loop.run_in_executor(None, input, "> ")
        except EOFError:
            print()
            return
        question = question.strip()
        if not question:
            continue
        if question.lower() in ("exit", "quit"):
            return
        answer = await agent.ask(question, identity)
        print(f"\n{answer}\n")


async def run(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    if args.endpoint:
        settings.sse_endpoint = args.endpoint

    identity = None
    if args.user_id is not None:
        identity = IdentityContext(args.user_id, args.user_role)

    agent = ChatAgent.from_settings(settings, args.strategy)

    try:
        await agent.start()
    except McpChatError as e:
        print(f"Error: could not connect to {settings.sse_endpoint}: {e}")
        await agent.stop()
        return 1

    try:
        if args.list_tools:
            print_tools(agent)
        elif args.question:
            print("=" * 60)
            print(await agent.ask(args.question, identity))
            print("=" * 60)
        else:
            await interactive(agent, identity)
    finally:
        await agent.stop()
        print("\nMCP session closed.")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Ask questions answered by tools on an MCP SSE server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_chat.py --list-tools
  python run_chat.py -q "Who is the top agent?" --strategy assistant
  python run_chat.py --endpoint https://tools.example.com/sse --user-id 7 --user-role agent
        """,
    )
    parser.add_argument("--question", "-q", type=str, help="Ask one question and exit")
    parser.add_argument("--strategy", "-s", choices=STRATEGY_CHOICES, default="auto", help="Answer strategy (default: auto)")
    parser.add_argument("--endpoint", "-e", type=str, default=None, help="SSE endpoint URL (overrides MCP_SSE_ENDPOINT)")
    parser.add_argument("--user-id", type=str, default=None, help="User id appended to prompts")
    parser.add_argument("--user-role", type=str, default="unknown", help="User role appended to prompts")
    parser.add_argument("--list-tools", action="store_true", help="List the server's tools and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
