"""
Credential classification and aggregation for credential-audit.

Every secret and certificate found on an application registration, plus
every SAML signing certificate on a service principal, becomes one
CredentialRecord with a days-until-expiry figure and a status tier.

This module contains pure functions with no I/O — it is fully unit-testable
with mock data.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

# ── Constants ─────────────────────────────────────────────────────────────────

CRITICAL_DAYS = 30
WARNING_DAYS = 60
SECONDS_PER_DAY = 86400

# Graph emits 0-7 fractional-second digits; older fromisoformat wants exactly 3 or 6
_FRACTION_RE = re.compile(r"\.(\d+)")


class CredentialType(str, Enum):
    CLIENT_SECRET = "ClientSecret"
    CERTIFICATE_SIGN = "CertificateSign"
    CERTIFICATE_VERIFY = "CertificateVerify"
    CERTIFICATE_OTHER = "CertificateOther"
    SAML_SIGNING_CERTIFICATE = "SamlSigningCertificate"

    def __str__(self) -> str:
        return self.value


class ExpiryStatus(str, Enum):
    EXPIRED = "EXPIRED"
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    OK = "OK"

    def __str__(self) -> str:
        return self.value


_KEY_USAGE_TYPES = {
    "Sign": CredentialType.CERTIFICATE_SIGN,
    "Verify": CredentialType.CERTIFICATE_VERIFY,
}

# ── Data classes ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CredentialRecord:
    application_name: str
    application_id: str
    object_id: str
    credential_type: CredentialType
    credential_id: str
    display_name: str
    start_date: datetime | None
    expiry_date: datetime
    days_until_expiry: int
    status: ExpiryStatus


@dataclass(frozen=True)
class AuditResult:
    records: tuple[CredentialRecord, ...]
    counts: dict[ExpiryStatus, int]
    urgent: tuple[CredentialRecord, ...]
    generated_at: datetime
    tenant_id: str = ""

    @property
    def total(self) -> int:
        return len(self.records)


# ── Helpers ───────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _six_digit_fraction(match: re.Match) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def _parse_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        # Graph returns ISO 8601 with trailing Z or +00:00
        dt = datetime.fromisoformat(_FRACTION_RE.sub(_six_digit_fraction, value.replace("Z", "+00:00")))
    except (ValueError, TypeError, AttributeError):
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def days_until(expiry: datetime, now: datetime) -> int:
    """Whole days from now to expiry, rounded half-to-even. Negative once expired."""
    return round((expiry - now).total_seconds() / SECONDS_PER_DAY)


def status_for_days(days: int) -> ExpiryStatus:
    if days < 0:
        return ExpiryStatus.EXPIRED
    if days <= CRITICAL_DAYS:
        return ExpiryStatus.CRITICAL
    if days <= WARNING_DAYS:
        return ExpiryStatus.WARNING
    return ExpiryStatus.OK


def credential_type_for_usage(usage: str | None) -> CredentialType:
    return _KEY_USAGE_TYPES.get(usage or "", CredentialType.CERTIFICATE_OTHER)


def _make_record(owner: dict, cred: dict, cred_type: CredentialType, now: datetime) -> CredentialRecord | None:
    expiry = _parse_dt(cred.get("endDateTime"))
    if expiry is None:
        return None
    days = days_until(expiry, now)
    return CredentialRecord(
        application_name=owner.get("displayName") or "",
        application_id=owner.get("appId") or "",
        object_id=owner.get("id") or "",
        credential_type=cred_type,
        credential_id=cred.get("keyId") or "",
        display_name=cred.get("displayName") or "",
        start_date=_parse_dt(cred.get("startDateTime")),
        expiry_date=expiry,
        days_until_expiry=days,
        status=status_for_days(days),
    )


# ── Classification ────────────────────────────────────────────────────────────


def classify_secrets(app: dict, now: datetime) -> list[CredentialRecord]:
    """One ClientSecret record per password credential that has an expiry."""
    records = []
    for cred in app.get("passwordCredentials") or []:
        record = _make_record(app, cred, CredentialType.CLIENT_SECRET, now)
        if record is not None:
            records.append(record)
    return records


def classify_certificates(app: dict, now: datetime) -> list[CredentialRecord]:
    """One record per application key credential, typed by its usage."""
    records = []
    for cred in app.get("keyCredentials") or []:
        record = _make_record(app, cred, credential_type_for_usage(cred.get("usage")), now)
        if record is not None:
            records.append(record)
    return records


def classify_saml_certificates(sp: dict, now: datetime) -> list[CredentialRecord]:
    """
    SAML signing certificates on a service principal.

    Only key credentials with usage "Sign" count. The record carries the
    service principal's own name and ids, and is not deduplicated against a
    matching certificate already reported from the application registration.
    """
    records = []
    for cred in sp.get("keyCredentials") or []:
        if cred.get("usage") != "Sign":
            continue
        record = _make_record(sp, cred, CredentialType.SAML_SIGNING_CERTIFICATE, now)
        if record is not None:
            records.append(record)
    return records


# ── Aggregation ───────────────────────────────────────────────────────────────


def sort_records(records: list[CredentialRecord]) -> list[CredentialRecord]:
    """Soonest expiry first. Stable, so ties keep discovery order."""
    return sorted(records, key=lambda r: r.expiry_date)


def status_counts(records: list[CredentialRecord] | tuple[CredentialRecord, ...]) -> dict[ExpiryStatus, int]:
    """Return status → count. OK is derived so the four always sum to the total."""
    counts = {
        status: sum(1 for r in records if r.status is status)
        for status in (ExpiryStatus.EXPIRED, ExpiryStatus.CRITICAL, ExpiryStatus.WARNING)
    }
    counts[ExpiryStatus.OK] = len(records) - sum(counts.values())
    return counts


def urgent_records(records: list[CredentialRecord] | tuple[CredentialRecord, ...]) -> list[CredentialRecord]:
    return [r for r in records if r.days_until_expiry <= WARNING_DAYS]


def analyze_all(raw_data: dict, now: datetime | None = None) -> AuditResult:
    """
    Classify every credential in the collected data and aggregate the result.

    Discovery order is all application secrets, then all application
    certificates, then all SAML signing certificates.
    """
    now = now or _utcnow()
    applications = raw_data.get("applications", [])
    service_principals = raw_data.get("service_principals", [])

    discovered: list[CredentialRecord] = []
    for app in applications:
        discovered.extend(classify_secrets(app, now))
    for app in applications:
        discovered.extend(classify_certificates(app, now))
    for sp in service_principals:
        discovered.extend(classify_saml_certificates(sp, now))

    records = sort_records(discovered)
    return AuditResult(
        records=tuple(records),
        counts=status_counts(records),
        urgent=tuple(urgent_records(records)),
        generated_at=now,
        tenant_id=raw_data.get("tenant_id", ""),
    )
