"""Insert-only audit trail for tip settlement, role changes and sign-ins.

No update or delete helpers exist for ``audit_logs``.
"""

import logging
from typing import Optional

from fastapi import Request

import app.database as _db
from app.utils import utcnow

logger = logging.getLogger("tipfeed.audit")


def truncate_ip(ip: str) -> str:
    """Anonymize an IP address by masking its last segment.

    IPv4: 192.168.1.42 -> 192.168.1.xxx
    IPv6: 2001:db8::1  -> 2001:db8::xxx
    """
    if not ip:
        return ""
    if "." in ip:
        parts = ip.split(".")
        if len(parts) == 4:
            parts[-1] = "xxx"
            return ".".join(parts)
        return ip
    if ":" in ip:
        head, _, _tail = ip.rpartition(":")
        return f"{head}:xxx" if head else ip
    return ip


def _client_ip(request: Optional[Request]) -> str:
    if request is None:
        return ""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return ""


async def log_audit(
    *,
    actor_id: str,
    target_id: str,
    action: str,
    metadata: Optional[dict] = None,
    request: Optional[Request] = None,
) -> None:
    """Write an audit record.

    Args:
        actor_id: Who performed the action (user id or "SYSTEM").
        target_id: What was affected (tip id, user id).
        action: e.g. "TIP_SETTLED", "ROLE_GRANTED".
        metadata: Optional before/after values.
        request: Optional request for IP extraction.
    """
    doc = {
        "timestamp": utcnow(),
        "actor_id": actor_id,
        "target_id": target_id,
        "action": action,
        "metadata": metadata or {},
        "ip_truncated": truncate_ip(_client_ip(request)),
    }
    try:
        await _db.db.audit_logs.insert_one(doc)
    except Exception:
        # Audit logging must never fail the request
        logger.exception("Failed to write audit log: action=%s actor=%s", action, actor_id)
