"""Micro-interpreter for "live" rule parameters.

Rule fields such as fuzzing values or delays may hold a small call-like
expression instead of a plain value, e.g. ``random(1, 100)`` or
``time(unix)``. Expressions are parsed into a tree of EncodedCmd nodes and
then interpreted into a single string. Anything that is not a known command
is plain text and evaluates to itself.
"""
import logging
import re
import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import IntEnum
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Deepest nesting level accepted by parse_command (top level is depth 0)
MAX_RECURSION_DEPTH = 20

# Value returned by get_float/get_int when an expression cannot be turned into a number
FAIL_OPEN_DEFAULT = 1.0

RandomSource = Callable[[int, int], int]
Clock = Callable[[], datetime]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_STRFTIME_DIRECTIVES = set("aAwdbBmyYHIpMSfzZjUWcxXGuV")


class Token(IntEnum):
    LITERAL = -1
    RANDOM = 0
    TIME = 1
    URL = 2


# Command name -> token. Names are open to registration, tokens are not.
COMMAND_TOKENS: Dict[str, int] = {
    "random": Token.RANDOM,
    "time": Token.TIME,
    "url": Token.URL,
}


class ExpressionError(Exception):
    """Base class for parse and evaluation failures.

    ``fallback_value`` is set when the failing command still produced a
    best-effort value. Callers must treat the expression as failed anyway.
    """

    def __init__(self, message: str, fallback_value: Optional[str] = None):
        super().__init__(message)
        self.fallback_value = fallback_value


class RecursionLimitExceeded(ExpressionError):
    pass


class UnbalancedExpression(ExpressionError):
    pass


class ArgumentCountMismatch(ExpressionError):
    pass


class InvalidArgument(ExpressionError):
    pass


class UnknownToken(ExpressionError):
    pass


@dataclass(frozen=True)
class EncodedCmd:
    """A node of a parsed expression.

    Literal nodes have token -1, no args and the literal text in arg_value.
    Command nodes carry their arguments in args; a command nested as an
    argument also keeps its original text in arg_value.
    """
    token: int = Token.LITERAL
    args: List["EncodedCmd"] = field(default_factory=list)
    arg_value: str = ""

    def is_literal(self) -> bool:
        return self.token == Token.LITERAL


def register_command(name: str, token: Token) -> None:
    """Make ``name`` an alias for an existing built-in command."""
    name = name.strip()
    if not name or "(" in name or "," in name:
        raise ValueError(f"Invalid command name: {name!r}")
    try:
        token = Token(token)
    except ValueError:
        raise ValueError(f"Unknown token {token} for command {name!r}") from None
    if token == Token.LITERAL:
        raise ValueError(f"Cannot register {name!r} as a literal")
    if name in COMMAND_TOKENS:
        logger.warning(f"Command '{name}' already registered, overwriting")
    COMMAND_TOKENS[name] = token
    logger.debug(f"Registered command: {name} -> {token.name}")


def get_command_token(command: str) -> Tuple[int, str, bool]:
    """Return (token, name, known) for the identifier before the first '('."""
    name = command.split("(", 1)[0].strip()
    token = COMMAND_TOKENS.get(name)
    if token is None:
        return Token.LITERAL, name, False
    return token, name, True


def is_command(text: str) -> bool:
    """True if text has the shape ``name(...)`` with a known command name."""
    text = text.strip()
    _, _, known = get_command_token(text)
    return known and "(" in text and text.endswith(")")


def split_parameters(param_string: str) -> List[str]:
    """
    Split a parameter list on top-level commas.

    Commas inside double quotes or nested parentheses are content. A quote
    preceded by a backslash does not open or close a quoted span. Quotes and
    backslashes are kept in the returned parameters.

    Raises:
        UnbalancedExpression: on an unterminated quote or mismatched parentheses
    """
    if not param_string.strip():
        return []

    params: List[str] = []
    current: List[str] = []
    in_quotes = False
    escaped = False
    level = 0

    for char in param_string:
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            in_quotes = not in_quotes
        elif not in_quotes:
            if char == "(":
                level += 1
            elif char == ")":
                level -= 1
                if level < 0:
                    raise UnbalancedExpression(f"unexpected ')' in parameters: {param_string}")
            elif char == "," and level == 0:
                params.append("".join(current).strip())
                current = []
                continue
        current.append(char)

    if in_quotes or level != 0:
        raise UnbalancedExpression(f"unmatched quotes or parentheses in parameters: {param_string}")

    params.append("".join(current).strip())
    return params


def parse_command(command: str, depth: int = 0) -> EncodedCmd:
    """
    Parse an expression into an EncodedCmd tree.

    Args:
        command: Expression text, e.g. 'random(1, time(unix))' or plain text
        depth: Nesting level of this call (0 for the top level)

    Returns:
        A command node, or a literal node when the text is not a command call

    Raises:
        RecursionLimitExceeded: nesting goes deeper than MAX_RECURSION_DEPTH
        UnbalancedExpression: a command call has unmatched quotes or parentheses
    """
    if depth > MAX_RECURSION_DEPTH:
        raise RecursionLimitExceeded(f"exceeded maximum recursion depth ({MAX_RECURSION_DEPTH})")

    command = command.strip()
    token, name, known = get_command_token(command)
    if not known or "(" not in command:
        return EncodedCmd(arg_value=command)

    if not command.endswith(")"):
        # Text such as 'random(1,2) ms' is plain text, 'random(1,2' is broken
        split_parameters(command)
        return EncodedCmd(arg_value=command)

    param_string = command[command.index("(") + 1:-1]
    encoded_args: List[EncodedCmd] = []
    for param in split_parameters(param_string):
        if is_command(param):
            nested = parse_command(param, depth + 1)
            encoded_args.append(replace(nested, arg_value=param))
        else:
            encoded_args.append(EncodedCmd(arg_value=param))

    logger.debug(f"Parsed command '{name}' with {len(encoded_args)} args at depth {depth}")
    return EncodedCmd(token=token, args=encoded_args)


def secure_randint(low: int, high: int) -> int:
    """Uniform integer in [low, high] from the OS CSPRNG."""
    return low + secrets.randbelow(high - low + 1)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def interpret_command(
    cmd: EncodedCmd,
    randint: Optional[RandomSource] = None,
    clock: Optional[Clock] = None,
) -> str:
    """
    Evaluate a parsed expression to a string.

    Args:
        cmd: Root of the parsed tree
        randint: Provider of uniform integers in an inclusive range (default: secure_randint)
        clock: Returns the current timezone-aware datetime (default: local time)

    Raises:
        ArgumentCountMismatch, InvalidArgument, UnknownToken
    """
    randint = randint or secure_randint
    clock = clock or _local_now

    if cmd.token == Token.LITERAL:
        return cmd.arg_value
    if cmd.token == Token.RANDOM:
        return _handle_random(cmd.args, randint, clock)
    if cmd.token == Token.TIME:
        return _handle_time(cmd.args, randint, clock)
    if cmd.token == Token.URL:
        return "*"
    raise UnknownToken(f"unknown command token: {cmd.token}")


def evaluate_expression(
    expression: str,
    randint: Optional[RandomSource] = None,
    clock: Optional[Clock] = None,
) -> str:
    """Parse and interpret in one step."""
    return interpret_command(parse_command(expression, 0), randint=randint, clock=clock)


def _parse_int_argument(value: str, which: str) -> int:
    if not _INTEGER_RE.match(value.strip()):
        raise InvalidArgument(f"invalid {which} argument for random: {value}")
    return int(value)


def _handle_random(args: List[EncodedCmd], randint: RandomSource, clock: Clock) -> str:
    if len(args) != 2:
        raise ArgumentCountMismatch(f"random command expects 2 arguments, got {len(args)}")

    min_arg = interpret_command(args[0], randint, clock)
    max_arg = interpret_command(args[1], randint, clock)
    min_val = _parse_int_argument(min_arg, "min")
    max_val = _parse_int_argument(max_arg, "max")

    if min_val >= max_val:
        raise InvalidArgument(f"min argument must be less than max argument for random ({min_val} >= {max_val})")

    return str(randint(min_val, max_val))


def _is_valid_time_format(time_format: str) -> bool:
    """A usable strftime pattern: known directives only, and at least one of them."""
    directives = 0
    i = 0
    while i < len(time_format):
        if time_format[i] == "%":
            if i + 1 >= len(time_format):
                return False
            directive = time_format[i + 1]
            if directive != "%":
                if directive not in _STRFTIME_DIRECTIVES:
                    return False
                directives += 1
            i += 2
        else:
            i += 1
    return directives > 0


def _unix_seconds(now: datetime) -> int:
    delta = now - _EPOCH
    return delta.days * 86400 + delta.seconds


def _unix_nanos(now: datetime) -> int:
    return _unix_seconds(now) * 1_000_000_000 + (now - _EPOCH).microseconds * 1000


def _handle_time(args: List[EncodedCmd], randint: RandomSource, clock: Clock) -> str:
    now = clock()
    if not args:
        raise ArgumentCountMismatch("time command expects 1 argument, got 0", fallback_value=str(now))

    try:
        time_format = interpret_command(args[0], randint, clock)
    except ExpressionError as e:
        e.fallback_value = str(now)
        raise

    keyword = time_format.strip().lower()
    if keyword == "unix":
        return str(_unix_seconds(now))
    if keyword == "unixnano":
        return str(_unix_nanos(now))
    if keyword == "rfc3339":
        return now.isoformat(timespec="seconds")
    if keyword == "now":
        return str(now)

    if not _is_valid_time_format(time_format):
        raise InvalidArgument(f"invalid time format: {time_format}", fallback_value=str(now))
    return now.strftime(time_format)


# ----- Numeric helpers ----- #

def is_number(text: str) -> bool:
    try:
        float(text)
    except (TypeError, ValueError):
        return False
    return True


def get_float(expression: str, default: Optional[float] = FAIL_OPEN_DEFAULT) -> float:
    """
    Numeric value of a plain number or an expression such as 'random(1,5)'.

    When the value cannot be computed, ``default`` is returned and a warning
    logged (fail-open). Pass ``default=None`` to get the error raised instead.
    """
    try:
        if is_number(expression):
            return float(expression)
        return float(evaluate_expression(expression))
    except (ExpressionError, ValueError) as e:
        if default is None:
            raise
        logger.warning(f"Could not get a number from {expression!r} ({e}), using default {default}")
        return default


def get_int(expression: str, default: Optional[float] = FAIL_OPEN_DEFAULT) -> int:
    """get_float truncated towards zero."""
    value = get_float(expression, default)
    try:
        return int(value)
    except (OverflowError, ValueError):
        if default is None:
            raise
        logger.warning(f"Could not truncate {value!r} from {expression!r}, using default {default}")
        return int(default)
