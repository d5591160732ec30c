"""
Apply a cached player profile to raw format descriptors.
"""

import logging
from typing import Protocol
from urllib.parse import parse_qs, parse_qsl, quote, urlencode, urlparse

from ..core.errors import EvaluationFailure
from ..models.cipher import (
    CachedPlayerProfile,
    CipherOperation,
    ReverseOperation,
    SpliceOperation,
    SwapOperation,
)
from ..models.enums import ResolutionIssue, ResolutionStatus
from ..models.formats import AudioFormatDescriptor, ResolvedFormat, VideoFormatDescriptor

logger = logging.getLogger(__name__)


class ScriptEvaluator(Protocol):
    def evaluate(self, function_source: str, argument: str) -> str:
        """Run ``function_source`` on ``argument``; raise EvaluationFailure on error."""
        ...


def replay_operations(signature: str, operations) -> str:
    """
    Replay cipher operations on a scrambled signature.

    >>> replay_operations("abcd", [SwapOperation(index=2), ReverseOperation(), SpliceOperation(count=1)])
    'abc'
    """
    chars = list(signature)
    for op in operations:
        if not chars:
            break
        if isinstance(op, SwapOperation):
            i = op.index % len(chars)
            chars[0], chars[i] = chars[i], chars[0]
        elif isinstance(op, SpliceOperation):
            del chars[: op.count]
        elif isinstance(op, ReverseOperation):
            chars.reverse()
    return "".join(chars)


def _append_query(url: str, name: str, value: str) -> str:
    separator = "&" if urlparse(url).query else "?"
    return f"{url}{separator}{name}={quote(value, safe='')}"


def _get_n(url: str) -> str | None:
    values = parse_qs(urlparse(url).query, keep_blank_values=True).get("n")
    return values[0] if values else None


def _replace_n(url: str, new_value: str) -> str:
    parsed = urlparse(url)
    query = [(k, new_value if k == "n" else v) for k, v in parse_qsl(parsed.query, keep_blank_values=True)]
    return parsed._replace(query=urlencode(query)).geturl()


def _decipher_url(
    signature_cipher: str,
    operations: tuple[CipherOperation, ...],
    issues: list[ResolutionIssue],
) -> str | None:
    params = parse_qs(signature_cipher, keep_blank_values=True)
    url = (params.get("url") or [None])[0]
    signature = (params.get("s") or [None])[0]
    if not url or signature is None:
        issues.append(ResolutionIssue.SIGNATURE_CIPHER_MALFORMED)
        return None

    param_name = (params.get("sp") or ["sig"])[0] or "sig"
    if not operations:
        issues.append(ResolutionIssue.SIGNATURE_OPERATIONS_MISSING)
    return _append_query(url, param_name, replay_operations(signature, operations))


def apply(
    profile: CachedPlayerProfile | None,
    raw_format: VideoFormatDescriptor | AudioFormatDescriptor,
    evaluator: ScriptEvaluator,
) -> ResolvedFormat:
    """
    Build the fetchable URL of one format.

    With no profile (player unavailable) only plaintext URLs come through,
    their n parameter left as is.
    """
    operations = profile.operations if profile is not None else ()
    n_function = profile.n_function_source if profile is not None else None
    issues: list[ResolutionIssue] = []

    if raw_format.url:
        url = raw_format.url
    elif raw_format.signature_cipher:
        url = _decipher_url(raw_format.signature_cipher, operations, issues)
        if url is not None and profile is not None and profile.has_unknown_operations:
            issues.append(ResolutionIssue.UNKNOWN_OPERATION_SKIPPED)
    else:
        url = None
        issues.append(ResolutionIssue.SIGNATURE_CIPHER_MALFORMED)

    if url is None:
        logger.warning("No URL could be built for itag %s", raw_format.itag)
        return ResolvedFormat(
            format=raw_format, url=None, status=ResolutionStatus.UNRESOLVED, issues=issues
        )

    n_value = _get_n(url)
    if n_value:
        if not n_function:
            issues.append(ResolutionIssue.N_FUNCTION_MISSING)
        else:
            try:
                url = _replace_n(url, evaluator.evaluate(n_function, n_value))
            except EvaluationFailure as e:
                logger.warning("n-parameter transform failed for itag %s: %s", raw_format.itag, e)
                issues.append(ResolutionIssue.N_EVALUATION_FAILED)

    status = ResolutionStatus.DEGRADED if issues else ResolutionStatus.RESOLVED
    return ResolvedFormat(format=raw_format, url=url, status=status, issues=issues)
