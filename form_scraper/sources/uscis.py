"""USCIS forms: one PDF per form plus a separate instructions PDF."""

from .base import BaseSource
from ..models import FormSource


class USCISSource(BaseSource):
    source = FormSource.USCIS

    BASE_URL = "https://www.uscis.gov/sites/default/files/document/forms/{form}.pdf"

    def download_url(self, form_number: str) -> str:
        return self.BASE_URL.format(form=form_number.lower())

    def instructions_url(self, form_number: str) -> str:
        return self.BASE_URL.format(form=f"{form_number.lower()}instr")
