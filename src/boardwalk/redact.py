"""Secret masking for logs, error messages and file previews."""

import re
from dataclasses import dataclass

REDACTED = "[REDACTED]"

SECRET_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Webhook URLs
    re.compile(r"https://hooks\.slack\.com/[^\s'\"<>)}\]]+", re.IGNORECASE),
    re.compile(r"https://discord(?:app)?\.com/api/webhooks/[^\s'\"<>)}\]]+", re.IGNORECASE),
    # GitHub tokens
    re.compile(r"gh[pousr]_[A-Za-z0-9_]{36,}"),
    re.compile(r"github_pat_[A-Za-z0-9_]{22,}"),
    # Bearer tokens and Authorization headers
    re.compile(r"Bearer\s+[A-Za-z0-9\-_.~+/]+=*", re.IGNORECASE),
    re.compile(r"Authorization:\s*[^\s'\"<>)}\],]+", re.IGNORECASE),
    # key=value style credentials
    re.compile(
        r"(?:api[_-]?key|api[_-]?secret|access[_-]?token|secret[_-]?key)\s*[:=]\s*"
        r"['\"]?[A-Za-z0-9\-_.~+/]{16,}['\"]?",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:API_KEY|API_SECRET|SECRET_KEY|SECRET_TOKEN|AUTH_TOKEN|ACCESS_TOKEN|GH_TOKEN|"
        r"GITHUB_TOKEN|PRIVATE_KEY|PASSWORD|WEBHOOK_URL)=[^\s'\"<>)}\]]+",
        re.IGNORECASE,
    ),
    # npm and AWS keys
    re.compile(r"npm_[A-Za-z0-9]{36,}"),
    re.compile(r"(?:AKIA|ASIA)[A-Z0-9]{16}"),
)


@dataclass(frozen=True)
class SecretMasker:
    """Replaces secret-looking substrings with a placeholder.

    Masking is on unless the caller builds the masker with ``enabled=False``
    (for example from ``[output] mask_secrets = false`` in config.toml).
    """

    enabled: bool = True

    def mask(self, text: str) -> str:
        if not self.enabled or not text:
            return text
        for pattern in SECRET_PATTERNS:
            text = pattern.sub(REDACTED, text)
        return text


DEFAULT_MASKER = SecretMasker()
