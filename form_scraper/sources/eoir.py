"""EOIR forms (Department of Justice): file download endpoint, no instructions."""

from .base import BaseSource
from ..models import FormSource


class EOIRSource(BaseSource):
    source = FormSource.EOIR

    # justice.gov keys the file by the lowercased form number without dashes
    BASE_URL = "https://www.justice.gov/eoir/file/{form}/download"

    def download_url(self, form_number: str) -> str:
        return self.BASE_URL.format(form=form_number.lower().replace("-", ""))
