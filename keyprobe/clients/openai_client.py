from typing import Optional

import requests

from keyprobe.clients.base_http_client import BaseHTTPClient, HTTPResult
from keyprobe.config.settings import DEFAULT_BASE_URL
from keyprobe.schemas.credential import Credential
from keyprobe.schemas.probe import ProbeRequest
from keyprobe.utils.log import app_logger


class OpenAIClient(BaseHTTPClient):
    def __init__(self, credential: Credential, base_url: str = DEFAULT_BASE_URL,
                 timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.credential = credential
        super().__init__(
            base_url=base_url,
            api_key=credential.value,
            timeout=timeout,
            session=session
        )

    def _setup_authentication(self):
        self.session.headers['Authorization'] = f"Bearer {self.api_key}"

    def send(self, request: ProbeRequest) -> HTTPResult:
        """ post a probe request with its own accept header and timeout """
        app_logger.debug("openai.send", probe=request.probe, endpoint=request.endpoint,
                         credential=self.credential.masked)
        return self.post(
            request.endpoint,
            data=request.payload,
            headers={'Accept': request.accept},
            timeout=request.timeout
        )
