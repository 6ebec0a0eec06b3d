"""CLI entry point for taxoclass.

Usage:
    python -m taxoclass classify Q64 Q90 --categories categories.yaml
    python -m taxoclass explain Q64 --db postgresql://localhost/taxoclass --json
    python -m taxoclass covered Q515 --categories categories.yaml
"""

import argparse
import json
import logging
import sys

from taxoclass.exceptions import TaxoclassError, ValidationError


def parse_regional(values):
    """Parse repeated QID=Category arguments into a mapping."""
    regional = {}
    for value in values or []:
        qid, sep, category = value.partition("=")
        if not sep or not qid.strip() or not category.strip():
            raise ValidationError(
                f"invalid regional override '{value}'",
                value=value,
                expected_type="QID=Category"
            )
        regional[qid.strip()] = category.strip()
    return regional


def build_parser():
    parser = argparse.ArgumentParser(
        prog="taxoclass",
        description="Wikidata hierarchy classifier",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Classify a few items with a local SQLite cache
    python -m taxoclass classify Q64 Q90 --categories categories.yaml

    # Explain a verdict with a regional override active
    python -m taxoclass explain Q1234 --regional Q1785071=castle

    # Check whether a class is covered without regional help
    python -m taxoclass covered Q515

Environment variables:
    TAXOCLASS_DB: Store locator (alternative to --db)
    TAXOCLASS_CATEGORIES: Categories file (alternative to --categories)
    TAXOCLASS_API_ENDPOINT, TAXOCLASS_USER_AGENT,
    TAXOCLASS_TIMEOUT, TAXOCLASS_MAX_RETRIES: Wikidata client options
"""
    )

    parser.add_argument(
        "command",
        choices=["classify", "explain", "covered"],
        help="Operation to run",
    )
    parser.add_argument(
        "qids",
        nargs="+",
        help="Wikidata QIDs",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite path or postgresql:// URI of the hierarchy store",
    )
    parser.add_argument(
        "--categories",
        dest="categories_path",
        default=None,
        help="Category configuration file (.yaml, .yml or .json)",
    )
    parser.add_argument(
        "--regional",
        action="append",
        default=[],
        metavar="QID=CATEGORY",
        help="Regional category override (repeatable)",
    )
    parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print results as JSON",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    return parser


def run(args, clf):
    """Run one command against a classifier and return printable records."""
    records = []
    for qid in args.qids:
        if args.command == "classify":
            result = clf.classify(qid)
            record = result.to_dict() if result else None
        elif args.command == "explain":
            record = clf.explain(qid).to_dict()
        else:
            record = clf.is_covered_by_static_config(qid)
        records.append((qid, record))
    return records


def format_record(qid, record):
    if record is None:
        return f"{qid}\tno match"
    if isinstance(record, bool):
        return f"{qid}\t{'covered' if record else 'not covered'}"
    if record.get("ignored"):
        text = f"{qid}\tignored"
    elif record.get("category"):
        text = f"{qid}\t{record['category']} ({record['size']})"
    else:
        text = f"{qid}\tno match"
    if record.get("reason"):
        text += f"\t{record['reason']}"
    return text


def main(argv=None):
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger(__name__)

    from taxoclass import create_classifier
    from taxoclass.config import Settings

    try:
        settings = Settings.from_env()
        if args.db:
            settings.db = args.db
        if args.categories_path:
            settings.categories_path = args.categories_path
        regional = parse_regional(args.regional)

        clf = create_classifier(settings)
    except TaxoclassError as e:
        logger.error(str(e))
        return 1

    try:
        if regional:
            clf.add_regional_categories(regional)
        records = run(args, clf)
    except TaxoclassError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        clf.close()

    if args.as_json:
        print(json.dumps({qid: record for qid, record in records}, indent=2))
    else:
        for qid, record in records:
            print(format_record(qid, record))
    return 0


if __name__ == "__main__":
    sys.exit(main())
