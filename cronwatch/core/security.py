import hashlib
import hmac
import time

# Slack rejects requests older than five minutes to prevent replay
SLACK_SIGNATURE_MAX_AGE_SECONDS = 60 * 5


def compute_slack_signature(signing_secret: str, timestamp: str, body: bytes) -> str:
    """Compute the v0 signature Slack sends in X-Slack-Signature."""
    basestring = b"v0:" + timestamp.encode() + b":" + body
    digest = hmac.new(signing_secret.encode(), basestring, hashlib.sha256).hexdigest()
    return f"v0={digest}"


def verify_slack_signature(
    signing_secret: str,
    timestamp: str | None,
    signature: str | None,
    body: bytes,
    now: float | None = None,
) -> bool:
    """
    Verify a request came from Slack.

    Args:
        signing_secret: App signing secret
        timestamp: X-Slack-Request-Timestamp header
        signature: X-Slack-Signature header
        body: Raw request body
        now: Current unix time (for tests)

    Returns:
        True if the signature matches and the timestamp is fresh
    """
    if not signing_secret or not timestamp or not signature:
        return False

    try:
        ts = int(timestamp)
    except ValueError:
        return False

    current = now if now is not None else time.time()
    if abs(current - ts) > SLACK_SIGNATURE_MAX_AGE_SECONDS:
        return False

    expected = compute_slack_signature(signing_secret, timestamp, body)
    return hmac.compare_digest(expected, signature)


def verify_api_key(expected: str, provided: str | None) -> bool:
    """Check the X-Api-Key header. An empty expected key disables the check."""
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(expected, provided)
