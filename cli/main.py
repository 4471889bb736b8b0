"""Command-line entry point for the proxy"""
import argparse
import sys

from rich.console import Console
from rich.panel import Panel

from config.settings import (
    BACKEND_API_KEY,
    BACKEND_BASE_URL,
    BIND_ADDRESS,
    DEFAULT_MODEL,
    MONITOR_MODE,
    NATIVE_BASE_URL,
    PORT,
)
from proxy.server import ProxyServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Anthropic Messages API proxy for OpenAI-compatible model backends"
    )
    parser.add_argument("--bind", default=None, help=f"Address to bind to (default: {BIND_ADDRESS})")
    parser.add_argument("--port", type=int, default=None, help=f"Port to listen on (default: {PORT})")
    parser.add_argument("--model", default=None, help="Backend model used for every request")
    parser.add_argument(
        "--monitor", action="store_true", help="Forward every request to Anthropic untranslated and log the traffic"
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging to console and proxy_debug.log")
    return parser


def show_banner(console: Console, bind_address: str, port: int, model: str, monitor: bool = False) -> None:
    lines = [f"Listening on [bold]http://{bind_address}:{port}[/bold]"]
    if monitor:
        lines.append(f"[cyan]Monitor mode[/cyan]: forwarding every request to {NATIVE_BASE_URL}")
    else:
        lines.append(f"Backend: {BACKEND_BASE_URL}")
        lines.append(f"Model: {model or '[dim]as requested by client[/dim]'}")
        if not BACKEND_API_KEY:
            lines.append("[yellow]No backend API key configured - requests will be rejected with 401[/yellow]")
    console.print(Panel("\n".join(lines), title="Anthropic OpenRouter Proxy", expand=False))


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    console = Console()

    bind_address = args.bind or BIND_ADDRESS
    port = args.port or PORT
    server = ProxyServer(
        debug=args.debug, bind_address=bind_address, port=port, model=args.model, monitor=args.monitor
    )

    if args.debug:
        console.print("[yellow]Debug mode enabled - verbose logging will be written to proxy_debug.log[/yellow]")
    show_banner(console, bind_address, port, args.model or DEFAULT_MODEL, monitor=args.monitor or MONITOR_MODE)

    try:
        server.run()
    except KeyboardInterrupt:
        console.print("Shutting down...")
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
