#!/usr/bin/env python3
"""
Parley CLI.

    COMMAND         ALIASES         WHAT IT DOES
    -------         -------         ----------------------------------
    serve           start, up       Start the parley API server
    status          ping, health    Ping a running instance
    chat            talk            Chat with a provider from the terminal
"""

import argparse
import sys

from parley import __version__

DEFAULT_URL = "http://localhost:8000"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Start the parley API server."""
    import uvicorn
    from parley.config import get_config

    cfg = get_config()
    server_cfg = cfg.get("server", {})
    host = args.host or server_cfg.get("host", "0.0.0.0")
    port = args.port or server_cfg.get("port", 8000)

    print(f"  parley {__version__} listening on {host}:{port}")
    print()

    uvicorn.run(
        "parley.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_status(args):
    """Ping a running parley instance."""
    import httpx

    url = (args.url or DEFAULT_URL).rstrip("/")
    try:
        resp = httpx.get(f"{url}/api/health", timeout=5)
        if resp.status_code != 200:
            print(f"  ✗  No answer, got HTTP {resp.status_code}")
            return

        health = resp.json()
        sessions = health.get("sessions", {})
        print(f"  ✓  {url} is UP (v{health.get('version', '?')})")
        print(f"     Sessions: {sessions.get('active_sessions', 0)} active / {sessions.get('total_sessions', 0)} stored")
        print(f"     Sweeper: {'running' if health.get('sweeper') else 'stopped'}")

        info = httpx.get(f"{url}/api/chat", timeout=5).json()
        configured = info.get("configured", [])
        print(f"     Providers: {', '.join(configured) if configured else 'none configured'}")
    except httpx.ConnectError:
        print(f"  ✗  Nothing listening at {url}")
    except httpx.HTTPError as e:
        print(f"  ✗  Error: {e}")


def cmd_chat(args):
    """Interactive chat against a running instance. Empty line or Ctrl-D quits."""
    import httpx

    url = (args.url or DEFAULT_URL).rstrip("/")
    thread_id = args.thread
    history: list[dict] = []

    print(f"  Chatting via {args.provider} at {url} (empty line to quit)")
    with httpx.Client(timeout=args.timeout) as client:
        while True:
            try:
                line = input("you> ").strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break
            if not line:
                break

            body = {"message": line, "provider": args.provider}
            if thread_id:
                body["threadId"] = thread_id
            if args.assistant:
                body["assistantId"] = args.assistant
            if args.model:
                body["model"] = args.model
            if args.system:
                body["systemPrompt"] = args.system
            if args.provider == "openai-chat":
                body["history"] = history

            try:
                resp = client.post(f"{url}/api/chat", json=body)
            except httpx.HTTPError as e:
                print(f"  ✗  {e}", file=sys.stderr)
                continue
            data = resp.json()
            if resp.status_code != 200:
                print(f"  ✗  HTTP {resp.status_code}: {data.get('error', '')}", file=sys.stderr)
                continue

            reply = data["message"]
            thread_id = data.get("threadId") or thread_id
            history.append({"role": "user", "content": line})
            history.append({"role": "assistant", "content": reply["content"]})
            print(f"bot> {reply['content']}")

    if thread_id:
        print(f"  thread: {thread_id}")


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under multiple names."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parley",
        description="Parley: one chat contract, several backends.",
        epilog="Run 'parley <command> --help' for command-specific options.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"parley {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    def setup_serve(p):
        p.add_argument("--host", default=None, help="Override listen host")
        p.add_argument("--port", "-p", type=int, default=None, help="Override listen port")
        p.add_argument("--reload", action="store_true", help="Auto-reload on code changes (dev)")

    _add_command(sub, ["serve", "start", "up"], "Start the parley API server", cmd_serve, setup_serve)

    def setup_status(p):
        p.add_argument("--url", "-u", default=None, help=f"parley URL (default: {DEFAULT_URL})")

    _add_command(sub, ["status", "ping", "health"], "Ping a running parley instance", cmd_status, setup_status)

    def setup_chat(p):
        p.add_argument("--url", "-u", default=None, help=f"parley URL (default: {DEFAULT_URL})")
        p.add_argument("--provider", "-P", default="openai-chat",
                       choices=["openai-chat", "openai-assistant", "webhook"])
        p.add_argument("--assistant", "-a", default=None, help="Assistant id (openai-assistant)")
        p.add_argument("--thread", "-t", default=None, help="Resume an existing thread")
        p.add_argument("--model", "-m", default=None, help="Model id (openai-chat)")
        p.add_argument("--system", "-s", default=None, help="System prompt (openai-chat)")
        p.add_argument("--timeout", type=float, default=90, help="Per-turn HTTP timeout in seconds")

    _add_command(sub, ["chat", "talk"], "Chat with a provider from the terminal", cmd_chat, setup_chat)

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
