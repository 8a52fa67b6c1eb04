import argparse
import dataclasses
import json
import logging
import sys
from core.expression import ExpressionError, evaluate_expression
from core.signature_index import DetectionSignatureIndex, get_http_header_fields_map_by_key
from rules.rules_loader import load_detection_rules


def _to_jsonable(value):
    if dataclasses.is_dataclass(value):
        return dataclasses.asdict(value)
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_jsonable(v) for v in value]
    return value


def _run_eval(args, logger) -> int:
    results = []
    status = 0
    for expression in args.expressions:
        try:
            results.append({"expression": expression, "value": evaluate_expression(expression)})
        except ExpressionError as e:
            logger.error(f"Failed to evaluate {expression!r}: {e}")
            results.append({"expression": expression, "error": type(e).__name__, "message": str(e)})
            status = 1
    print(json.dumps(results, indent=2))
    return status


def _run_index(args, logger) -> int:
    try:
        rules = load_detection_rules(args.rules_dir)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load rules from {args.rules_dir}: {e}")
        return 1
    logger.info(f"Loaded {len(rules)} detection rules")

    if args.header_key:
        output = get_http_header_fields_map_by_key(rules, args.header_key)
    else:
        output = DetectionSignatureIndex.from_rules(rules)
    print(json.dumps(_to_jsonable(output), indent=2))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Detection rule and expression tooling")
    parser.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging verbosity level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    eval_parser = subparsers.add_parser("eval", help="Evaluate one or more parameter expressions (e.g. 'random(1,10)')")
    eval_parser.add_argument("expressions", nargs="+", help="Expressions to evaluate")

    index_parser = subparsers.add_parser("index", help="Print the signature index built from a rules directory")
    index_parser.add_argument("rules_dir", help="Directory containing .yaml ruleset files")
    index_parser.add_argument("--header-key", type=str, help="Only print header signatures for this header name")

    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, args.log_level),
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logger = logging.getLogger(__name__)

    if args.command == "eval":
        return _run_eval(args, logger)
    return _run_index(args, logger)


if __name__ == "__main__":
    sys.exit(main())
