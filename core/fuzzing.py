"""Resolve fuzzing parameter values at crawl time."""
from typing import Dict, List, Optional, Sequence
import logging
from core.expression import Clock, ExpressionError, RandomSource, evaluate_expression
from models.crawling_rule import CrawlingRule, FuzzingParameter

logger = logging.getLogger(__name__)


def resolve_fuzzing_values(
    parameter: FuzzingParameter,
    randint: Optional[RandomSource] = None,
    clock: Optional[Clock] = None,
) -> List[str]:
    """
    Evaluate every value of a fuzzing parameter.

    Values written as expressions (e.g. 'random(1,100)') are computed afresh
    on each call; plain values are returned trimmed. Expression errors are
    raised to the caller, which decides whether to skip the parameter.
    """
    resolved = [evaluate_expression(v, randint=randint, clock=clock) for v in parameter.get_values()]
    logger.debug(f"Resolved {len(resolved)} values for fuzzing parameter {parameter.get_parameter_name()}")
    return resolved


def resolve_crawling_rule(
    rule: CrawlingRule,
    randint: Optional[RandomSource] = None,
    clock: Optional[Clock] = None,
) -> Dict[str, List[str]]:
    """Parameter name -> resolved values for all fuzzing parameters of a crawling rule."""
    return {
        p.get_parameter_name(): resolve_fuzzing_values(p, randint=randint, clock=clock)
        for p in rule.get_fuzzing_parameters()
    }


def resolve_crawling_rules(rules: Sequence[CrawlingRule]) -> Dict[str, Dict[str, List[str]]]:
    """Rule name -> resolved parameters. Rules whose values fail to evaluate are logged and left out."""
    resolved: Dict[str, Dict[str, List[str]]] = {}
    for rule in rules:
        try:
            resolved[rule.get_rule_name()] = resolve_crawling_rule(rule)
        except ExpressionError as e:
            logger.warning(f"Skipping crawling rule {rule.get_rule_name()}: {e}")
    return resolved
