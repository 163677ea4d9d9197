# Overview: Server-side identity provisioning guarded by a service-account credential.

"""
Creating login identities on someone else's behalf (employee accounts) is a
privileged server operation. It needs the service-account credential from
PROVISIONING_CREDENTIALS (a JSON object). A missing or malformed credential
is a deployment defect and surfaces as ServiceUnavailableError (503), never
as a user error.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from flask import current_app

from ..errors import ServiceUnavailableError
from ..models import User
from .auth_service import build_user

REQUIRED_CREDENTIAL_FIELDS = ("type", "project_id", "client_email")


@dataclass(frozen=True)
class ProvisioningCredential:
    project_id: str
    client_email: str


def load_provisioning_credential() -> ProvisioningCredential:
    raw = current_app.config.get("PROVISIONING_CREDENTIALS")
    if not raw:
        current_app.logger.error("PROVISIONING_CREDENTIALS is not set; identity provisioning is disabled")
        raise ServiceUnavailableError("Identity provisioning is not configured")

    if isinstance(raw, dict):
        data = raw
    else:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            current_app.logger.error("PROVISIONING_CREDENTIALS is not valid JSON")
            raise ServiceUnavailableError("Identity provisioning credential is invalid")

    if not isinstance(data, dict):
        raise ServiceUnavailableError("Identity provisioning credential is invalid")

    missing = [key for key in REQUIRED_CREDENTIAL_FIELDS if not data.get(key)]
    if missing or data.get("type") != "service_account":
        current_app.logger.error("PROVISIONING_CREDENTIALS is missing fields: %s", ", ".join(missing) or "type")
        raise ServiceUnavailableError("Identity provisioning credential is invalid")

    return ProvisioningCredential(project_id=data["project_id"], client_email=data["client_email"])


def provision_identity(
    *,
    email: str,
    display_name: str,
    role: str,
    password: str | None = None,
    password_hash: str | None = None,
) -> User:
    """
    Create a login identity in the caller's transaction.

    Raises ServiceUnavailableError without touching the database when the
    credential is unusable.
    """
    credential = load_provisioning_credential()
    user = build_user(
        email=email,
        display_name=display_name,
        role=role,
        password=password,
        password_hash=password_hash,
    )
    current_app.logger.info(
        "Identity %s provisioned as %s in project %s via %s",
        user.id, role, credential.project_id, credential.client_email,
    )
    return user
