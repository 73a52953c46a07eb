"""Source registry."""

from typing import List

from ..errors import UnsupportedSourceError
from ..models import FormInfo, FormSource, TransferRequest
from .base import BaseSource
from .eoir import EOIRSource
from .uscis import USCISSource

ALL_SOURCES = {
    FormSource.USCIS: USCISSource(),
    FormSource.EOIR: EOIRSource(),
}


def get_source(source: FormSource) -> BaseSource:
    try:
        return ALL_SOURCES[source]
    except KeyError:
        raise UnsupportedSourceError(f"No URL pattern for source: {source.value}") from None


def transfer_requests(form: FormInfo, include_instructions: bool = False) -> List[TransferRequest]:
    """Primary request first, then the instructions request when asked for and published."""
    src = get_source(form.source)
    requests = [src.download_request(form)]
    if include_instructions:
        instructions = src.instructions_request(form)
        if instructions is not None:
            requests.append(instructions)
    return requests
