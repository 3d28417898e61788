"""Command-line entrypoint for paperlens.

The default store lives in memory, so ``ask``, ``explain`` and ``summarize``
ingest the paper first within the same process.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import Any, Callable, Dict, Optional

from paperlens.api import PaperLensClient
from paperlens.clients.persona import PersonaOptions
from paperlens.evidence.models import Selection
from paperlens.exceptions import PaperLensError

logger = logging.getLogger("paperlens.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ingest arXiv papers and ask grounded questions")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_ingest_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("paper_id", help="arXiv id, abs/pdf URL or arXiv DOI")
        sub.add_argument("--force-ocr", action="store_true", help="Run OCR even when the PDF has a text layer")
        sub.add_argument("--contact-email", default=None, help="Contact email forwarded to arXiv")

    def add_persona_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--persona-id", default=None, help="Persona id for the prompt service")
        sub.add_argument("--user-id", default=None, help="User id for the prompt service")

    ingest = subparsers.add_parser("ingest", help="Ingest a paper and print the result")
    add_ingest_options(ingest)

    ask = subparsers.add_parser("ask", help="Ingest a paper and answer a question about it")
    add_ingest_options(ask)
    ask.add_argument("question", help="Question to answer from the paper")
    ask.add_argument("--selection", default=None, help="Highlighted text to focus retrieval")
    ask.add_argument("--selection-page", type=int, default=None, help="Page of the highlighted text")
    ask.add_argument("--selection-section", default=None, help="Section of the highlighted text")
    add_persona_options(ask)

    explain = subparsers.add_parser("explain", help="Ingest a paper and explain a highlighted passage")
    add_ingest_options(explain)
    explain.add_argument("text", help="Highlighted text to explain")
    explain.add_argument("--page", type=int, default=None, help="Page of the highlighted text")
    explain.add_argument("--section", default=None, help="Section of the highlighted text")
    explain.add_argument(
        "--with-context", action="store_true", help="Also list nearby figures and enriched references"
    )
    add_persona_options(explain)

    summarize = subparsers.add_parser("summarize", help="Ingest a paper and summarize it")
    add_ingest_options(summarize)
    add_persona_options(summarize)

    return parser


def _persona(args: argparse.Namespace) -> Optional[PersonaOptions]:
    if not args.persona_id and not args.user_id:
        return None
    return PersonaOptions(user_id=args.user_id, persona_id=args.persona_id)


def _ingest(client: PaperLensClient, args: argparse.Namespace):
    return client.ingest(args.paper_id, force_ocr=args.force_ocr, contact_email=args.contact_email)


def _run_ingest(client: PaperLensClient, args: argparse.Namespace) -> Dict[str, Any]:
    return asdict(_ingest(client, args))


def _run_ask(client: PaperLensClient, args: argparse.Namespace) -> Dict[str, Any]:
    result = _ingest(client, args)
    selection = Selection(text=args.selection, section=args.selection_section, page=args.selection_page)
    answer = client.answer_question(result.paper_id, args.question, selection, _persona(args))
    return asdict(answer)


def _run_explain(client: PaperLensClient, args: argparse.Namespace) -> Dict[str, Any]:
    result = _ingest(client, args)
    selection = Selection(text=args.text, section=args.section, page=args.page)
    output: Dict[str, Any] = asdict(client.summarize_selection(result.paper_id, selection, _persona(args)))
    if args.with_context:
        output["figures"] = [asdict(figure) for figure in client.selection_figures(result.paper_id, selection)]
        output["references"] = [asdict(ref) for ref in client.selection_citations(result.paper_id, selection)]
    return output


def _run_summarize(client: PaperLensClient, args: argparse.Namespace) -> Dict[str, Any]:
    result = _ingest(client, args)
    return asdict(client.summarize(result.paper_id, _persona(args)))


def main(argv: list[str] | None = None, *, client: Optional[PaperLensClient] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    commands: Dict[str, Callable[[PaperLensClient, argparse.Namespace], Dict[str, Any]]] = {
        "ingest": _run_ingest,
        "ask": _run_ask,
        "explain": _run_explain,
        "summarize": _run_summarize,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.error("Unknown command")
        return 1
    if args.command == "explain" and not args.text.strip():
        parser.error("explain needs non-empty highlighted text")

    try:
        output = handler(client or PaperLensClient(), args)
    except PaperLensError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
