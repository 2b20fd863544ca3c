"""
Attestation Issuers - Mint membership attestations for attestation-gated projects.

An issuer exposes attest(AttestationRequest) -> attestation id and raises on
failure, which aborts the join that asked for it.
"""

import hashlib
import json
import os
from typing import Dict, List, Optional
import logging
import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from voting.models import AttestationRequest

log = logging.getLogger(__name__)


class AttestationError(RuntimeError):
    """The issuer refused or failed to create an attestation."""


class InMemoryAttestationIssuer:
    """
    Issues deterministic attestation ids and keeps every request.

    Set `fail_with` to a message to make every call fail.
    """

    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self.issued: Dict[str, AttestationRequest] = {}

    def attest(self, request: AttestationRequest) -> str:
        if self.fail_with:
            raise AttestationError(self.fail_with)
        body = json.dumps(request.to_dict(), sort_keys=True) + f":{len(self.issued)}"
        uid = "0x" + hashlib.sha256(body.encode()).hexdigest()
        self.issued[uid] = request
        log.debug(f"Issued attestation {uid} for {request.recipient}")
        return uid

    def attestations_for(self, recipient: str) -> List[str]:
        return [uid for uid, req in self.issued.items() if req.recipient == recipient]


class HttpAttestationIssuer:
    """
    Client for an attestation service exposing POST /attestations.

    The service answers {"uid": "0x..."} on success.
    """

    USER_AGENT = "quadvote/1.0"

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        self.base_url = (base_url or os.getenv("ATTESTATION_API_URL", "")).rstrip("/")
        self.api_key = api_key or os.getenv("ATTESTATION_API_KEY", "")
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": self.USER_AGENT,
            "Authorization": f"Bearer {self.api_key}",
        })

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def _post(self, payload: Dict) -> Dict:
        response = self.session.post(f"{self.base_url}/attestations", json=payload, timeout=15)
        response.raise_for_status()
        return response.json()

    def attest(self, request: AttestationRequest) -> str:
        if not self.base_url:
            raise AttestationError("ATTESTATION_API_URL is not configured")
        try:
            result = self._post(request.to_dict())
        except requests.RequestException as e:
            log.error(f"Attestation request for {request.recipient} failed: {e}")
            raise AttestationError(str(e)) from e

        uid = result.get("uid")
        if not uid:
            raise AttestationError(f"Attestation service returned no uid: {result}")
        log.info(f"Attestation {uid} issued to {request.recipient}")
        return uid
