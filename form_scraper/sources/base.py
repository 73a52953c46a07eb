"""Abstract base class for form source categories."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import FormInfo, FormSource, TransferRequest


class BaseSource(ABC):
    source: FormSource

    @abstractmethod
    def download_url(self, form_number: str) -> str:
        """URL of the form PDF itself."""
        ...

    def instructions_url(self, form_number: str) -> Optional[str]:
        """URL of the separate instructions PDF, if this source publishes one."""
        return None

    def download_request(self, form: FormInfo) -> TransferRequest:
        return TransferRequest(
            url=self.download_url(form.form_number),
            filename=f"{form.form_number}.pdf",
        )

    def instructions_request(self, form: FormInfo) -> Optional[TransferRequest]:
        url = self.instructions_url(form.form_number)
        if url is None:
            return None
        return TransferRequest(
            url=url,
            filename=f"{form.form_number}_instructions.pdf",
            kind="instructions",
        )
