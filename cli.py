"""Command line entry point.

	htmltable export questions.xml -o review.htm --course-name "Biology 101"
	htmltable sanitize payload.html --strip
"""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import List, Optional
import argparse
import sys

from env import configure_logging
from exporter import ExportContext, ExportError, HtmlTableExporter
from pipeline import run_export
from sanitizer import SanitizerOptions, sanitize


def _read_input(path: str) -> str:
	if path == "-":
		return sys.stdin.read()
	return Path(path).read_text(encoding="utf-8")


def _options(args: argparse.Namespace) -> SanitizerOptions:
	opts = SanitizerOptions.from_env()
	if args.strip:
		opts = replace(opts, repair_tool=False)
	if args.named_entities:
		opts = replace(opts, normalize_entities=False)
	return opts


def _cmd_export(args: argparse.Namespace) -> int:
	context = ExportContext(
		course_name=args.course_name,
		locale_language=args.language,
		locale_country=args.country,
		text_direction=args.direction,
		release_version=args.release,
	)
	exporter = HtmlTableExporter(
		context,
		options=_options(args),
		special_case_category=False if args.no_category_passthrough else None,
		debug=True if args.keep_temp else None,
	)
	try:
		result = run_export(content=_read_input(args.input), context=context, exporter=exporter, record_events=not args.no_events)
	except ExportError as exc:
		print(f"Export failed: {exc}", file=sys.stderr)
		return 2
	output = Path(args.output) if args.output else Path(result.filename)
	output.write_text(result.html, encoding="utf-8")
	print(f"{output} ({result.counts['blocks']} question blocks, {result.counts['payloads']} text sections cleaned)")
	if result.counts["mismatches"]:
		print(f"warning: {result.counts['mismatches']} question blocks left as-is (unbalanced markers)", file=sys.stderr)
	return 0


def _cmd_sanitize(args: argparse.Namespace) -> int:
	sys.stdout.write(sanitize(_read_input(args.input), options=_options(args)))
	return 0


def _add_cleaning_flags(parser: argparse.ArgumentParser) -> None:
	parser.add_argument("--strip", action="store_true", help="use the allow-list tag stripper instead of the repair tool")
	parser.add_argument("--named-entities", action="store_true", help="keep named entities (no numeric rewrite)")


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(prog="htmltable", description="Convert question XML into an HTML review table")
	parser.add_argument("--log-level", default=None)
	sub = parser.add_subparsers(dest="command", metavar="<command>")
	sub.required = True

	exp = sub.add_parser("export", help="export question XML to HTML")
	exp.add_argument("input", help="question XML file, or - for stdin")
	exp.add_argument("-o", "--output", default=None)
	exp.add_argument("--course-name", default="")
	exp.add_argument("--language", default="en")
	exp.add_argument("--country", default="")
	exp.add_argument("--direction", choices=("ltr", "rtl"), default="ltr")
	exp.add_argument("--release", default="")
	exp.add_argument("--no-category-passthrough", action="store_true", help="clean category blocks like any other block")
	exp.add_argument("--keep-temp", action="store_true", help="keep intermediate XML files")
	exp.add_argument("--no-events", action="store_true", help="do not write to the export event log")
	_add_cleaning_flags(exp)
	exp.set_defaults(func=_cmd_export)

	san = sub.add_parser("sanitize", help="sanitize one text payload")
	san.add_argument("input", help="payload file, or - for stdin")
	_add_cleaning_flags(san)
	san.set_defaults(func=_cmd_sanitize)
	return parser


def main(argv: Optional[List[str]] = None) -> int:
	args = build_parser().parse_args(argv)
	configure_logging(args.log_level)
	return args.func(args)


if __name__ == "__main__":
	raise SystemExit(main())
