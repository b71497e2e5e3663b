# -*- coding: utf-8 -*-

"""
Command-line entry point for dita-l10n.

    dita-l10n generate sample.ditamap -l de-DE -l fr-FR -o xliff/ [--ditaval pub1.ditaval]
    dita-l10n import xliff/sample_de-DE.ditamap.xlf -o out/de-DE [--no-overwrite] [--no-assets] [--strict]
    dita-l10n pseudo xliff/sample_de-DE.ditamap.xlf translated.xlf
"""

import argparse
import logging
import sys
from typing import List, Optional

from dita_l10n.config import ConfigManager
from dita_l10n.core.exceptions import L10nError
from dita_l10n.core.services import LocalizationService
from dita_l10n.core.xliff import pseudo_translate
from dita_l10n.logging_config import setup_logging
from dita_l10n.version import get_version

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dita-l10n",
                                     description="Round-trip DITA maps through XLIFF 1.2.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="extract a DITA map into XLIFF files")
    gen.add_argument("map", help="root .ditamap file")
    gen.add_argument("-l", "--lang", dest="languages", action="append", required=True,
                     help="target language code (repeatable)")
    gen.add_argument("-o", "--output", required=True, help="folder receiving the .xlf files")
    gen.add_argument("--ditaval", help="DITAVAL profile applied during extraction")
    gen.add_argument("--source-lang", help="source language (default from configuration)")
    gen.add_argument("--no-profile-suffix", action="store_true",
                     help="leave the DITAVAL profile name out of the .xlf file names")

    imp = sub.add_parser("import", help="merge translated XLIFF files into a DITA folder")
    imp.add_argument("xliff", nargs="+", help="translated .xlf file(s)")
    imp.add_argument("-o", "--output", required=True, help="output folder")
    imp.add_argument("--no-overwrite", action="store_true", help="keep existing topic files")
    imp.add_argument("--no-assets", action="store_true", help="do not copy images and other assets")
    imp.add_argument("--strict", action="store_true",
                     help="fail documents with untranslated units or structural mismatches")

    pseudo = sub.add_parser("pseudo", help="pseudo-translate an XLIFF file")
    pseudo.add_argument("source", help="XLIFF file to read")
    pseudo.add_argument("target", help="XLIFF file to write")
    pseudo.add_argument("--prefix", help="text put before each target (default '<lang>:')")
    return parser


def _print_errors(entries, label: str) -> None:
    for entry in entries:
        where = f"{entry.document}: " if entry.document else ""
        unit = f" (unit {entry.unit_id})" if entry.unit_id else ""
        print(f"{label} [{entry.kind}] {where}{entry.message}{unit}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Configure logging, parse arguments and run one command.
    """
    args = build_parser().parse_args(argv)
    config_manager = ConfigManager()
    setup_logging(config_manager)
    service = LocalizationService(config_manager.engine_config())

    try:
        if args.command == "generate":
            report = service.generate(args.map, args.languages, args.output,
                                      ditaval=args.ditaval, source_language=args.source_lang,
                                      profile_in_name=not args.no_profile_suffix)
            for language, path in report.interchange_files.items():
                print(f"{language}: {path}")
            _print_errors(report.warnings, "warning")
            _print_errors(report.errors, "error")
            return 0 if report.success else 1

        if args.command == "import":
            reports = service.import_many(args.xliff, args.output,
                                          overwrite=not args.no_overwrite,
                                          copy_assets=not args.no_assets,
                                          strict=args.strict)
            for report in reports:
                print(f"{report.xliff_path}: {report.summary()}")
                _print_errors(report.warnings, "warning")
                _print_errors(report.errors, "error")
            return 0 if all(r.success for r in reports) else 1

        if args.command == "pseudo":
            filled = pseudo_translate(args.source, args.target, args.prefix)
            print(f"{filled} unit(s) pseudo-translated -> {args.target}")
            return 0
    except L10nError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 2


if __name__ == "__main__":
    sys.exit(main())
